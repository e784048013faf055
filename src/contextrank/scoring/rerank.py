"""
Post-scoring re-ranking of scored matches.

No re-scoring, just deterministic reordering of an already sorted list.
"""

from typing import List

from contextrank.core.logging import logger
from contextrank.models.scoring import ScoredMatch


def diversity_rerank(
    results: List[ScoredMatch], threshold: int = 5, window: int = 10
) -> List[ScoredMatch]:
    """
    Prevent one category from dominating the top results.

    Walking the list in score order, each item that adds a category not yet
    seen is promoted, until `window` items are promoted. Everything else
    follows in its original order; nothing is dropped.

    Args:
        results: Scored matches, best first
        threshold: Lists of this size or smaller are returned unchanged
        window: Maximum number of promoted items

    Returns:
        Reordered results with the same length as the input
    """
    if len(results) <= threshold:
        return results

    seen = set()
    promoted: List[ScoredMatch] = []
    rest: List[ScoredMatch] = []

    for result in results:
        categories = set(result.categories)
        if len(promoted) < window and categories - seen:
            promoted.append(result)
            seen |= categories
        else:
            rest.append(result)

    logger.debug("Diversity rerank", categories=len(seen), promoted=len(promoted))

    return promoted + rest

