"""
Tag index: tag -> item ids.
"""

import threading
from typing import AbstractSet, Dict, Iterable, Set


class TagIndex:
    """Incrementally maintained tag index."""

    def __init__(self) -> None:
        self._by_tag: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def apply(
        self, item_id: str, tags: AbstractSet[str], previous: AbstractSet[str] = frozenset()
    ) -> None:
        """Add new tags first, then drop the ones the item no longer carries."""
        with self._lock:
            for tag in tags:
                self._by_tag.setdefault(tag, set()).add(item_id)
            for tag in set(previous) - set(tags):
                self._discard(tag, item_id)

    def remove(self, item_id: str, tags: Iterable[str]) -> None:
        with self._lock:
            for tag in tags:
                self._discard(tag, item_id)

    def _discard(self, tag: str, item_id: str) -> None:
        ids = self._by_tag.get(tag)
        if ids is None:
            return
        ids.discard(item_id)
        if not ids:
            del self._by_tag[tag]

    def ids_for(self, tag: str) -> Set[str]:
        with self._lock:
            return set(self._by_tag.get(tag, ()))

    def ids_for_any(self, tags: Iterable[str]) -> Set[str]:
        result: Set[str] = set()
        with self._lock:
            for tag in tags:
                result |= self._by_tag.get(tag, set())
        return result

    def tag_counts(self) -> Dict[str, int]:
        with self._lock:
            return {tag: len(ids) for tag, ids in self._by_tag.items()}
