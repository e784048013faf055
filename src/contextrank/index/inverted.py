"""
Inverted keyword index: term -> item ids, plus per-item term counts used by
keyword scoring.
"""

import threading
from collections import Counter
from typing import Dict, Iterable, Optional, Set


class InvertedIndex:
    """
    Incrementally maintained inverted index.

    Term counts are replaced, never mutated in place, so a reader holding a
    Counter returned by term_counts() always sees a consistent snapshot.
    """

    def __init__(self) -> None:
        self._postings: Dict[str, Set[str]] = {}
        self._term_counts: Dict[str, Counter] = {}
        self._lock = threading.RLock()

    def apply(self, item_id: str, terms: Counter, previous: Optional[Counter] = None) -> None:
        """Publish an item's terms; stale terms from `previous` are removed afterwards."""
        with self._lock:
            for term in terms:
                self._postings.setdefault(term, set()).add(item_id)
            self._term_counts[item_id] = terms

            if previous:
                for term in previous.keys() - terms.keys():
                    self._discard(term, item_id)

    def remove(self, item_id: str) -> None:
        with self._lock:
            terms = self._term_counts.pop(item_id, None)
            if not terms:
                return
            for term in terms:
                self._discard(term, item_id)

    def _discard(self, term: str, item_id: str) -> None:
        ids = self._postings.get(term)
        if ids is None:
            return
        ids.discard(item_id)
        if not ids:
            del self._postings[term]

    def ids_with_any(self, terms: Iterable[str]) -> Set[str]:
        """Union of posting lists (at least one term)."""
        result: Set[str] = set()
        with self._lock:
            for term in set(terms):
                result |= self._postings.get(term, set())
        return result

    def ids_with_all(self, terms: Iterable[str]) -> Set[str]:
        """Intersection of posting lists (every term)."""
        unique = set(terms)
        if not unique:
            return set()
        with self._lock:
            postings = [self._postings.get(term, set()) for term in unique]
            postings.sort(key=len)
            result = set(postings[0])
            for ids in postings[1:]:
                result &= ids
                if not result:
                    break
        return result

    def term_counts(self, item_id: str) -> Counter:
        with self._lock:
            return self._term_counts.get(item_id, Counter())

    @property
    def vocabulary_size(self) -> int:
        with self._lock:
            return len(self._postings)
