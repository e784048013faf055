"""
Relevance scoring: signals, weight profiles, usage ledger, relationship
graph and diversity re-ranking.
"""

from contextrank.scoring.relationships import RelationshipGraph, RelationshipKind
from contextrank.scoring.relevance import RelevanceScorer, item_complexity
from contextrank.scoring.rerank import diversity_rerank
from contextrank.scoring.usage import UsageLedger, UsageRecord, UsageSnapshot
from contextrank.scoring.weights import BUILTIN_PROFILES, WeightProfileRegistry

__all__ = [
    "RelationshipGraph",
    "RelationshipKind",
    "RelevanceScorer",
    "item_complexity",
    "diversity_rerank",
    "UsageLedger",
    "UsageRecord",
    "UsageSnapshot",
    "BUILTIN_PROFILES",
    "WeightProfileRegistry",
]
