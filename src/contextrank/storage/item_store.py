"""
Item store abstraction.

Durability and replication belong to the backend; the engine only reads and
writes through this interface.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

import numpy as np

from contextrank.core.logging import logger
from contextrank.embeddings.types import as_vector
from contextrank.models.item import Item


class ItemStore(ABC):
    """Accessor for item records and their vectors."""

    @abstractmethod
    def put(self, item_id: str, item: Item) -> None:
        """Insert or replace an item."""

    @abstractmethod
    def get(self, item_id: str) -> Optional[Item]:
        """Return the item or None when absent."""

    @abstractmethod
    def delete(self, item_id: str) -> bool:
        """Delete an item; True when something was removed."""

    def get_vector(self, item_id: str) -> Optional[np.ndarray]:
        """Item vector as a float32 array."""
        item = self.get(item_id)
        if item is None or item.embedding is None:
            return None
        return as_vector(item.embedding)

    def get_many(self, item_ids: List[str]) -> Dict[str, Item]:
        found = {}
        for item_id in item_ids:
            item = self.get(item_id)
            if item is not None:
                found[item_id] = item
        return found

    def count(self) -> int:
        return sum(1 for _ in self.scan_all())

    @abstractmethod
    def scan_all(self) -> Iterator[Item]:
        """Iterate every stored item."""

    def scan(self, tenant_scope: Optional[str]) -> Iterator[Item]:
        """Iterate the items of exactly one tenant scope (None for unscoped items)."""
        return (item for item in self.scan_all() if item.tenant_scope == tenant_scope)

    def flush(self) -> None:
        """Persist pending writes. No-op for stores that write through."""


class InMemoryItemStore(ItemStore):
    """
    Thread-safe in-process store.

    Keeps a float32 copy of every vector next to the record so scoring does
    not convert lists on each query.
    """

    def __init__(self) -> None:
        self._items: Dict[str, Item] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        self._lock = threading.RLock()
        logger.info("InMemoryItemStore initialized")

    def put(self, item_id: str, item: Item) -> None:
        vector = as_vector(item.embedding) if item.embedding is not None else None
        with self._lock:
            self._items[item_id] = item
            if vector is not None:
                self._vectors[item_id] = vector
            else:
                self._vectors.pop(item_id, None)

    def get(self, item_id: str) -> Optional[Item]:
        with self._lock:
            return self._items.get(item_id)

    def get_vector(self, item_id: str) -> Optional[np.ndarray]:
        with self._lock:
            return self._vectors.get(item_id)

    def get_many(self, item_ids: List[str]) -> Dict[str, Item]:
        with self._lock:
            return {i: self._items[i] for i in item_ids if i in self._items}

    def delete(self, item_id: str) -> bool:
        with self._lock:
            self._vectors.pop(item_id, None)
            return self._items.pop(item_id, None) is not None

    def scan_all(self) -> Iterator[Item]:
        with self._lock:
            snapshot = list(self._items.values())
        return iter(snapshot)

    def count(self) -> int:
        with self._lock:
            return len(self._items)
