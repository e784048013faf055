"""
Metadata filter index.

Per field:
- an exact-match map (value -> item ids) for EQUALS
- a sorted numeric list for inclusive BETWEEN range lookups
"""

import bisect
import math
import threading
from typing import AbstractSet, Any, Dict, FrozenSet, List, Set, Tuple

ExactEntry = Tuple[str, Any]
RangeEntry = Tuple[str, float]


class _SortedPostings:
    """Parallel sorted value / id lists for one numeric field."""

    __slots__ = ("values", "ids")

    def __init__(self) -> None:
        self.values: List[float] = []
        self.ids: List[str] = []

    def insert(self, value: float, item_id: str) -> None:
        pos = bisect.bisect_right(self.values, value)
        self.values.insert(pos, value)
        self.ids.insert(pos, item_id)

    def delete(self, value: float, item_id: str) -> None:
        lo = bisect.bisect_left(self.values, value)
        hi = bisect.bisect_right(self.values, value)
        for pos in range(lo, hi):
            if self.ids[pos] == item_id:
                del self.values[pos]
                del self.ids[pos]
                return

    def between(self, low: float, high: float) -> Set[str]:
        lo = bisect.bisect_left(self.values, low)
        hi = bisect.bisect_right(self.values, high)
        return set(self.ids[lo:hi])

    def __len__(self) -> int:
        return len(self.values)


def _adjust_counts(counts: Dict[str, int], fields: AbstractSet[str], delta: int) -> None:
    for field in fields:
        count = counts.get(field, 0) + delta
        if count > 0:
            counts[field] = count
        else:
            counts.pop(field, None)


def is_indexable_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not (isinstance(value, float) and math.isnan(value))
    )


class MetadataFilterIndex:
    """
    Exact and range postings for item metadata.

    Entries are computed by IndexSet.postings_for() following the field
    lookup precedence of Item.lookup(), so index answers agree with a
    linear scan using FilterCondition.matches().
    """

    def __init__(self) -> None:
        self._exact: Dict[str, Dict[Any, Set[str]]] = {}
        self._ranges: Dict[str, _SortedPostings] = {}
        # Fields whose values come from a non-numeric source in at least one item
        self._mixed_fields: Dict[str, int] = {}
        # Fields with a value in at least one item that only a scan can evaluate
        self._opaque_fields: Dict[str, int] = {}
        self._lock = threading.RLock()

    def apply(
        self,
        item_id: str,
        exact: FrozenSet[ExactEntry],
        ranges: FrozenSet[RangeEntry],
        previous_exact: AbstractSet[ExactEntry] = frozenset(),
        previous_ranges: AbstractSet[RangeEntry] = frozenset(),
        opaque: AbstractSet[str] = frozenset(),
        previous_opaque: AbstractSet[str] = frozenset(),
    ) -> None:
        """Publish new entries, then remove stale ones."""
        with self._lock:
            _adjust_counts(self._opaque_fields, opaque, +1)
            for field, value in exact - previous_exact:
                self._exact.setdefault(field, {}).setdefault(value, set()).add(item_id)
            for field, value in ranges - previous_ranges:
                self._ranges.setdefault(field, _SortedPostings()).insert(value, item_id)
            self._track_mixed(exact, ranges, +1)

            self._track_mixed(previous_exact, previous_ranges, -1)
            _adjust_counts(self._opaque_fields, previous_opaque, -1)
            for field, value in previous_exact - exact:
                self._discard_exact(field, value, item_id)
            for field, value in previous_ranges - ranges:
                self._discard_range(field, value, item_id)

    def remove(
        self,
        item_id: str,
        exact: AbstractSet[ExactEntry],
        ranges: AbstractSet[RangeEntry],
        opaque: AbstractSet[str] = frozenset(),
    ) -> None:
        with self._lock:
            _adjust_counts(self._opaque_fields, opaque, -1)
            self._track_mixed(exact, ranges, -1)
            for field, value in exact:
                self._discard_exact(field, value, item_id)
            for field, value in ranges:
                self._discard_range(field, value, item_id)

    def _track_mixed(
        self, exact: AbstractSet[ExactEntry], ranges: AbstractSet[RangeEntry], delta: int
    ) -> None:
        range_fields = {field for field, _ in ranges}
        _adjust_counts(self._mixed_fields, {field for field, _ in exact} - range_fields, delta)

    def _discard_exact(self, field: str, value: Any, item_id: str) -> None:
        values = self._exact.get(field)
        if values is None:
            return
        ids = values.get(value)
        if ids is None:
            return
        ids.discard(item_id)
        if not ids:
            del values[value]
        if not values:
            del self._exact[field]

    def _discard_range(self, field: str, value: float, item_id: str) -> None:
        postings = self._ranges.get(field)
        if postings is None:
            return
        postings.delete(value, item_id)
        if not len(postings):
            del self._ranges[field]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def has_exact_field(self, field: str) -> bool:
        with self._lock:
            return field in self._exact and field not in self._opaque_fields

    def lookup_equals(self, field: str, value: Any) -> Set[str]:
        with self._lock:
            try:
                return set(self._exact.get(field, {}).get(value, ()))
            except TypeError:
                # Unhashable filter value never equals an indexed scalar
                return set()

    def supports_range(self, field: str) -> bool:
        """True when every item's value for the field is numeric."""
        with self._lock:
            return (
                field in self._ranges
                and field not in self._mixed_fields
                and field not in self._opaque_fields
            )

    def lookup_between(self, field: str, low: float, high: float) -> Set[str]:
        with self._lock:
            postings = self._ranges.get(field)
            return postings.between(low, high) if postings is not None else set()

    def field_names(self) -> List[str]:
        with self._lock:
            return sorted(set(self._exact) | set(self._ranges))
