"""
Data models of the retrieval engine.
"""

from contextrank.models.base import (
    ContextRankBaseModel,
    FrozenModel,
    StandardIdMixin,
    TimestampMixin,
)
from contextrank.models.item import Item
from contextrank.models.tool import ToolDescriptor, describe_schema
from contextrank.models.tenant import TenantContext
from contextrank.models.search import (
    FilterCondition,
    FilterOperator,
    Match,
    SearchMode,
    SearchRequest,
    SortSpec,
    compare_values,
)
from contextrank.models.scoring import (
    ComplexityLevel,
    ScoredMatch,
    ScoringContext,
    TaskCharacteristics,
    WeightProfile,
    context_key_for,
)

__all__ = [
    # Base
    "ContextRankBaseModel",
    "FrozenModel",
    "StandardIdMixin",
    "TimestampMixin",
    # Items
    "Item",
    "ToolDescriptor",
    "describe_schema",
    "TenantContext",
    # Search
    "FilterCondition",
    "FilterOperator",
    "Match",
    "SearchMode",
    "SearchRequest",
    "SortSpec",
    "compare_values",
    # Scoring
    "ComplexityLevel",
    "ScoredMatch",
    "ScoringContext",
    "TaskCharacteristics",
    "WeightProfile",
    "context_key_for",
]
