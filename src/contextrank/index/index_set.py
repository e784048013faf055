"""
The four item indices and the per-item publish / retract protocol.

Writers compute an ItemPostings for the new item (and keep the one of the
previous version) before touching any index, then apply them in a fixed
order. Readers resolve candidates from the tenant index first, so an item
is only reachable once every other index already holds it.
"""

import math
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from contextrank.core.utils.text import tokenize
from contextrank.index.inverted import InvertedIndex
from contextrank.index.metadata import (
    ExactEntry,
    MetadataFilterIndex,
    RangeEntry,
    is_indexable_number,
)
from contextrank.index.tags import TagIndex
from contextrank.index.tenant import TenantIndex
from contextrank.models.item import BUILTIN_FIELDS, Item

_LOCK_STRIPES = 64


@dataclass(frozen=True)
class ItemPostings:
    """Everything one item contributes to the indices."""

    item_id: str
    tenant_scope: Optional[str]
    terms: Counter = field(default_factory=Counter)
    tags: FrozenSet[str] = frozenset()
    categories: FrozenSet[str] = frozenset()
    exact: FrozenSet[ExactEntry] = frozenset()
    ranges: FrozenSet[RangeEntry] = frozenset()
    # Fields holding a value no index entry can represent
    opaque: FrozenSet[str] = frozenset()


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _hashable_scalar(value: Any) -> bool:
    if _is_missing(value):
        return False
    return isinstance(value, (bool, int, float, str))


def postings_for(item: Item) -> ItemPostings:
    """
    Compute index entries for an item.

    Field precedence matches Item.lookup(): structured, then numeric, then
    array, then top-level nested keys. Names of built-in fields are never
    indexed as metadata.
    """
    exact = set()
    ranges = set()
    opaque = set()
    seen = set(BUILTIN_FIELDS)

    for name, value in item.structured_metadata.items():
        if name in seen:
            continue
        seen.add(name)
        if _hashable_scalar(value):
            exact.add((name, value))

    for name, number in item.numeric_metadata.items():
        if name in seen:
            continue
        seen.add(name)
        if is_indexable_number(number):
            exact.add((name, number))
            ranges.add((name, float(number)))

    for name, values in item.array_metadata.items():
        if name in seen:
            continue
        seen.add(name)
        for value in values:
            if _hashable_scalar(value):
                exact.add((name, value))

    for name, value in item.nested_metadata.items():
        if name in seen:
            continue
        seen.add(name)
        if isinstance(value, list):
            for element in value:
                if _hashable_scalar(element):
                    exact.add((name, element))
                elif not _is_missing(element):
                    opaque.add(name)
        elif is_indexable_number(value):
            exact.add((name, value))
            ranges.add((name, float(value)))
        elif _hashable_scalar(value):
            exact.add((name, value))
        elif not _is_missing(value):
            opaque.add(name)

    return ItemPostings(
        item_id=item.id,
        tenant_scope=item.tenant_scope,
        terms=Counter(tokenize(item.content)),
        tags=frozenset(item.tags),
        categories=frozenset(item.categories),
        exact=frozenset(exact),
        ranges=frozenset(ranges),
        opaque=frozenset(opaque),
    )


class IndexSet:
    """
    Owner of the inverted, tag, metadata filter and tenant indices.

    There is no global lock: each index guards itself, and writers of the
    same item id serialize on a striped per-item lock.
    """

    def __init__(self) -> None:
        self.inverted = InvertedIndex()
        self.tags = TagIndex()
        self.metadata = MetadataFilterIndex()
        self.tenants = TenantIndex()
        self._item_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    def item_lock(self, item_id: str) -> threading.Lock:
        return self._item_locks[hash(item_id) % _LOCK_STRIPES]

    def publish(self, new: ItemPostings, previous: Optional[ItemPostings] = None) -> None:
        """
        Apply an item's postings.

        Order: inverted, metadata, tags, tenant. Additions precede removals
        of stale entries, so an updated item never disappears from an index
        it belongs to in both versions.
        """
        item_id = new.item_id
        self.inverted.apply(item_id, new.terms, previous.terms if previous else None)
        self.metadata.apply(
            item_id,
            new.exact,
            new.ranges,
            previous.exact if previous else frozenset(),
            previous.ranges if previous else frozenset(),
            new.opaque,
            previous.opaque if previous else frozenset(),
        )
        self.tags.apply(item_id, new.tags, previous.tags if previous else frozenset())
        self.tenants.apply(
            item_id,
            new.tenant_scope,
            new.categories,
            previous.categories if previous else frozenset(),
        )

    def retract(self, postings: ItemPostings) -> None:
        """Remove an item: tenant index first, then tags, metadata and terms."""
        item_id = postings.item_id
        self.tenants.remove(item_id, postings.categories)
        self.tags.remove(item_id, postings.tags)
        self.metadata.remove(item_id, postings.exact, postings.ranges, postings.opaque)
        self.inverted.remove(item_id)

    def stats(self) -> Dict[str, Any]:
        return {
            "items": len(self.tenants.all_ids()),
            "vocabulary_size": self.inverted.vocabulary_size,
            "tags": len(self.tags.tag_counts()),
            "metadata_fields": len(self.metadata.field_names()),
            "scopes": self.tenants.scope_counts(),
            "categories": self.tenants.category_counts(),
        }
