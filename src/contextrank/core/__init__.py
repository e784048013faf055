"""
contextrank core module.

Exports the fundamental components shared by every layer.
"""

# Configuration
from contextrank.core.secure_config import Settings, ConfigValidator

# Exceptions and errors
from contextrank.core.exceptions import (
    ContextRankError,
    ConfigurationError,
    ValidationError,
    InvalidFilterError,
    CapacityExceededError,
    NotFoundError,
    AccessDeniedError,
    ProviderUnavailableError,
    EngineShutdownError,
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    validation_error,
    not_found_error,
    from_exception,
)

# Logging
from contextrank.core.logging import (
    AsyncLogger,
    SensitiveDataMasker,
    PerformanceLogger,
    logger,  # Pre-configured global logger
)

# Tracing
from contextrank.core.tracing import LocalTracer, MetricsCollector, tracer

# IDs
from contextrank.core.id_generator import IDGenerator, generate_id, is_valid_id

__all__ = [
    "Settings",
    "ConfigValidator",
    "ContextRankError",
    "ConfigurationError",
    "ValidationError",
    "InvalidFilterError",
    "CapacityExceededError",
    "NotFoundError",
    "AccessDeniedError",
    "ProviderUnavailableError",
    "EngineShutdownError",
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "validation_error",
    "not_found_error",
    "from_exception",
    "AsyncLogger",
    "SensitiveDataMasker",
    "PerformanceLogger",
    "logger",
    "LocalTracer",
    "MetricsCollector",
    "tracer",
    "IDGenerator",
    "generate_id",
    "is_valid_id",
]
