"""
Tenant / category index: scope -> item ids and category -> item ids.
"""

import threading
from typing import AbstractSet, Dict, Iterable, Optional, Set


class TenantIndex:
    """
    Visibility gate of the engine.

    An item is searchable once it is present here; deletes remove it from
    this index first. Unscoped items are kept under the None scope.
    """

    def __init__(self) -> None:
        self._by_scope: Dict[Optional[str], Set[str]] = {}
        self._scope_by_id: Dict[str, Optional[str]] = {}
        self._by_category: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def apply(
        self,
        item_id: str,
        scope: Optional[str],
        categories: AbstractSet[str],
        previous_categories: AbstractSet[str] = frozenset(),
    ) -> None:
        with self._lock:
            for category in categories:
                self._by_category.setdefault(category, set()).add(item_id)
            self._by_scope.setdefault(scope, set()).add(item_id)
            self._scope_by_id[item_id] = scope
            for category in set(previous_categories) - set(categories):
                self._discard_category(category, item_id)

    def remove(self, item_id: str, categories: Iterable[str] = ()) -> None:
        with self._lock:
            if item_id in self._scope_by_id:
                scope = self._scope_by_id.pop(item_id)
                ids = self._by_scope.get(scope)
                if ids is not None:
                    ids.discard(item_id)
                    if not ids:
                        del self._by_scope[scope]
            for category in categories:
                self._discard_category(category, item_id)

    def _discard_category(self, category: str, item_id: str) -> None:
        ids = self._by_category.get(category)
        if ids is None:
            return
        ids.discard(item_id)
        if not ids:
            del self._by_category[category]

    def ids_for_scope(self, scope: Optional[str]) -> Set[str]:
        with self._lock:
            return set(self._by_scope.get(scope, ()))

    def all_ids(self) -> Set[str]:
        with self._lock:
            return set(self._scope_by_id)

    def has_scoped_items(self) -> bool:
        with self._lock:
            return any(scope is not None for scope in self._by_scope)

    def scope_counts(self) -> Dict[str, int]:
        with self._lock:
            return {str(scope): len(ids) for scope, ids in self._by_scope.items()}

    def category_counts(self) -> Dict[str, int]:
        with self._lock:
            return {category: len(ids) for category, ids in self._by_category.items()}
