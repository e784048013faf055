"""
Embeddings module.

Providers, the LRU/TTL embedding cache and the service that ties them
together with the degraded fallback.
"""

from contextrank.embeddings.types import (
    EmbeddingOutcome,
    EmbeddingProvider,
    EmbeddingVector,
    QueryExpansionProvider,
    as_vector,
    cosine_similarity,
)
from contextrank.embeddings.cache import CacheEntry, CacheStats, EmbeddingCache
from contextrank.embeddings.providers import HashEmbeddingProvider, OllamaEmbeddingProvider
from contextrank.embeddings.service import EmbeddingService

__all__ = [
    "EmbeddingOutcome",
    "EmbeddingProvider",
    "EmbeddingVector",
    "QueryExpansionProvider",
    "as_vector",
    "cosine_similarity",
    "CacheEntry",
    "CacheStats",
    "EmbeddingCache",
    "HashEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "EmbeddingService",
]
