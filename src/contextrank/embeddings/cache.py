"""
Embedding cache.

LRU cache with TTL from text (namespaced by model) to vector, with hit/miss
accounting. Safe for concurrent use from the worker pools.
"""

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, TypedDict

from contextrank.core.logging import logger
from contextrank.core.tracing import MetricsCollector
from contextrank.embeddings.types import EmbeddingVector


class CacheStats(TypedDict):
    """TypedDict for cache statistics."""

    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    hit_rate: float
    evictions: int
    oldest_entry_age: float
    newest_entry_age: float
    capacity_used: float
    operations_until_cleanup: int


@dataclass
class CacheEntry:
    """Cache entry with TTL.

    Attributes:
        embedding: Stored embedding vector
        created_at: Creation timestamp (for TTL)
    """

    embedding: EmbeddingVector
    created_at: float


class EmbeddingCache:
    """LRU cache with TTL for embeddings.

    Uses OrderedDict for O(1) LRU eviction. Degraded vectors are never
    stored so a recovered provider is used as soon as it comes back.

    Attributes:
        max_size: Maximum number of entries in cache
        ttl_seconds: Time to live in seconds for each entry
    """

    def __init__(
        self,
        max_size: int = 10000,
        ttl_seconds: float = 3600,
        namespace: str = "",
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initializes the cache with configurable limits.

        Args:
            max_size: Maximum number of entries (default: 10000)
            ttl_seconds: TTL in seconds (default: 3600 = 1 hour)
            namespace: Key prefix, typically the embedding model name
            metrics: Collector receiving hit/miss counters
        """
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self.metrics = metrics
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

        # Automatic periodic cleanup
        self._operations_count = 0
        self._cleanup_interval = 100  # Clean every 100 set() operations

        logger.info("EmbeddingCache initialized", max_size=max_size, ttl_seconds=ttl_seconds)

    def _generate_key(self, text: str) -> str:
        """SHA256 of namespace and text."""
        return hashlib.sha256(f"{self.namespace}||{text}".encode("utf-8")).hexdigest()

    def get(self, text: str) -> Optional[EmbeddingVector]:
        """Gets embedding from cache if it exists and has not expired.

        Args:
            text: Text that was embedded

        Returns:
            EmbeddingVector if present and valid, None otherwise
        """
        key = self._generate_key(text)

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and time.monotonic() - entry.created_at > self.ttl_seconds:
                del self._cache[key]
                entry = None

            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
                self._cache.move_to_end(key)

        if self.metrics is not None:
            self.metrics.increment("embeddings.cache_hit" if entry else "embeddings.cache_miss")

        return entry.embedding if entry else None

    def set(self, text: str, embedding: EmbeddingVector) -> None:
        """Saves embedding in cache with LRU eviction if necessary.

        Args:
            text: Original text
            embedding: Vector to save
        """
        if embedding.degraded:
            return

        key = self._generate_key(text)

        with self._lock:
            if len(self._cache) >= self.max_size and key not in self._cache:
                self._cache.popitem(last=False)
                self._evictions += 1

            self._cache[key] = CacheEntry(embedding=embedding, created_at=time.monotonic())
            self._cache.move_to_end(key)

            self._operations_count += 1
            run_cleanup = self._operations_count >= self._cleanup_interval
            if run_cleanup:
                self._operations_count = 0

        if run_cleanup:
            self.cleanup_expired()

    def clear(self) -> None:
        """Clears the cache."""
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.info("Embedding cache cleared", removed=size)

    def cleanup_expired(self) -> int:
        """Deletes expired entries from the cache.

        Returns:
            Number of deleted entries
        """
        current_time = time.monotonic()
        with self._lock:
            expired_keys = [
                key
                for key, entry in self._cache.items()
                if current_time - entry.created_at > self.ttl_seconds
            ]
            for key in expired_keys:
                del self._cache[key]

        if expired_keys:
            logger.info("Cleaned up expired cache entries", count=len(expired_keys))

        return len(expired_keys)

    @property
    def size(self) -> int:
        """Current number of entries in cache."""
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> CacheStats:
        """Returns cache statistics."""
        current_time = time.monotonic()
        with self._lock:
            ages = [current_time - entry.created_at for entry in self._cache.values()]
            lookups = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "evictions": self._evictions,
                "oldest_entry_age": max(ages) if ages else 0.0,
                "newest_entry_age": min(ages) if ages else 0.0,
                "capacity_used": len(self._cache) / self.max_size,
                "operations_until_cleanup": self._cleanup_interval - self._operations_count,
            }
