"""
contextrank - tenant-isolated hybrid retrieval engine.

Finds the most relevant documents or tool descriptors for a query by
combining vector similarity, keyword matching and usage-derived signals.
"""

from contextrank._version import __version__, __version_info__

# Core components
from contextrank.core import (
    logger,
    Settings,
    generate_id,
    ContextRankError,
    ValidationError,
    InvalidFilterError,
    CapacityExceededError,
    ConfigurationError,
    NotFoundError,
    AccessDeniedError,
    ProviderUnavailableError,
    EngineShutdownError,
)

# Models
from contextrank.models import (
    Item,
    ToolDescriptor,
    TenantContext,
    FilterCondition,
    FilterOperator,
    SearchMode,
    SearchRequest,
    SortSpec,
    Match,
    ComplexityLevel,
    TaskCharacteristics,
    WeightProfile,
    ScoringContext,
    ScoredMatch,
)

# Engine
from contextrank.engine import Engine

__all__ = [
    "__version__",
    "__version_info__",
    "logger",
    "Settings",
    "generate_id",
    "ContextRankError",
    "ValidationError",
    "InvalidFilterError",
    "CapacityExceededError",
    "ConfigurationError",
    "NotFoundError",
    "AccessDeniedError",
    "ProviderUnavailableError",
    "EngineShutdownError",
    "Item",
    "ToolDescriptor",
    "TenantContext",
    "FilterCondition",
    "FilterOperator",
    "SearchMode",
    "SearchRequest",
    "SortSpec",
    "Match",
    "ComplexityLevel",
    "TaskCharacteristics",
    "WeightProfile",
    "ScoringContext",
    "ScoredMatch",
    "Engine",
]
