"""
Keyword relevance used by the keyword, hybrid and semantic-keyword modes.
"""

import math
from collections import Counter
from typing import List

PHRASE_BONUS = 0.3
ALL_TERMS_BONUS = 0.3


def keyword_score(query_terms: List[str], item_terms: Counter, content: str, phrase: str) -> float:
    """
    Log-scaled term frequency score in [0, 1].

    Every query term (duplicates included) that occurs in the item adds
    1 + ln(tf). The sum is averaged over the query terms and scaled by the
    fraction of terms matched. Content containing the whole phrase gets a
    bonus.

    Args:
        query_terms: Tokenized query
        item_terms: Term counts of the item
        content: Item content, for the phrase check
        phrase: Query text checked as a case-insensitive substring
    """
    score = 0.0
    if query_terms:
        total = 0.0
        matched = 0
        for term in query_terms:
            tf = item_terms.get(term, 0)
            if tf > 0:
                total += 1.0 + math.log(tf)
                matched += 1
        n = len(query_terms)
        score = (total / n) * (matched / n)

    if phrase and phrase.lower() in content.lower():
        score += PHRASE_BONUS

    return min(1.0, score)
