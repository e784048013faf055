"""
Retrieval: candidate resolution, search modes and query expansion.
"""

from contextrank.retrieval.filters import CandidateResolver, validate_request
from contextrank.retrieval.keyword import keyword_score
from contextrank.retrieval.query_expansion import (
    LexicalVariantExpander,
    NoopQueryExpander,
    OllamaQueryExpander,
)
from contextrank.retrieval.search_engine import SearchEngine, sort_matches

__all__ = [
    "CandidateResolver",
    "validate_request",
    "keyword_score",
    "LexicalVariantExpander",
    "NoopQueryExpander",
    "OllamaQueryExpander",
    "SearchEngine",
    "sort_matches",
]
