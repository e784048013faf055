"""
Unified exception hierarchy for contextrank.
Single source of exceptions and structured error payloads for the whole package.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from contextrank.core.id_generator import generate_id
from contextrank.core.utils.datetime_utils import format_iso, utc_now


# ============================================================================
# PART 1: PYTHON EXCEPTIONS (raise/catch)
# ============================================================================


class ContextRankError(Exception):
    """
    Base error of the retrieval engine.

    Features:
    1. Structured serialization
    2. Rich context
    3. Resolution suggestions
    4. Unique ID for tracking
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.id: str = generate_id()
        self.timestamp: datetime = utc_now()
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause
        self.suggestions: List[str] = []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to a dictionary.

        Returns:
            {
                "error_id": "hex32chars",
                "code": "NotFoundError",
                "message": "Item not found: abc",
                "timestamp": "2024-01-20T10:30:00Z",
                "context": {...}
            }
        """
        result: Dict[str, Any] = {
            "error_id": self.id,
            "code": self.code,
            "message": self.message,
            "timestamp": format_iso(self.timestamp),
            "context": self.context,
        }

        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result

    def add_suggestion(self, suggestion: str) -> None:
        """
        Add a resolution suggestion to the error.

        Example:
            error = CapacityExceededError("Batch too large", limit=10000, requested=25000)
            error.add_suggestion("Split the batch into chunks of at most 10000 items")
        """
        if not suggestion or not isinstance(suggestion, str):
            return

        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def is_retryable(self) -> bool:
        """Whether retrying the same call can succeed."""
        return False


class ConfigurationError(ContextRankError):
    """Invalid or unreadable configuration."""

    pass


class ValidationError(ContextRankError):
    """
    A request or record failed validation before any work started.

    Context usually carries "field", "value" and "reason".
    """

    pass


class InvalidFilterError(ValidationError):
    """Filter operator and value do not fit together (e.g. IN with a scalar)."""

    pass


class CapacityExceededError(ValidationError):
    """
    Batch or result size above the configured limit.

    The limit is always stated so the caller can re-chunk.
    """

    def __init__(self, message: str, limit: int, requested: int, **kwargs: Any) -> None:
        context = kwargs.pop("context", None) or {}
        context.update({"limit": limit, "requested": requested})
        super().__init__(message, context=context, **kwargs)
        self.limit = limit
        self.requested = requested


class NotFoundError(ContextRankError):
    """Unknown item id on get/update/delete."""

    pass


class AccessDeniedError(ContextRankError):
    """Unscoped read of scoped data, or a tenant scope mismatch."""

    pass


class ProviderUnavailableError(ContextRankError):
    """
    Embedding or query-expansion provider failed or timed out.

    Recovered locally through the degraded fallback, never fatal to a request.
    """

    def is_retryable(self) -> bool:
        """Provider failures are usually transient."""
        return True


class EngineShutdownError(ContextRankError):
    """Operation attempted after Engine.shutdown()."""

    pass


# ============================================================================
# PART 2: STRUCTURED ERROR PAYLOADS (for calling applications)
# ============================================================================


class ErrorType(str, Enum):
    """Error categories exposed to callers."""

    VALIDATION = "validation_error"
    INVALID_FILTER = "invalid_filter"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    CONFIGURATION = "configuration_error"
    INTERNAL = "internal_error"


class ErrorDetail(BaseModel):
    """Specific detail of a validation error."""

    field: str = Field(..., description="Field that failed validation")
    value: Any = Field(..., description="Invalid value received")
    reason: str = Field(..., description="Reason of the failure")
    message: str = Field(..., description="Explanatory message")


class ErrorResponse(BaseModel):
    """Structured error payload."""

    error_type: ErrorType = Field(..., description="Error category")
    message: str = Field(..., description="Main error message")
    error_id: Optional[str] = Field(default=None, description="Unique ID for tracking")
    details: Optional[List[ErrorDetail]] = Field(
        default=None, description="Per-field details (validation errors)"
    )
    context: Optional[Dict[str, Any]] = Field(default=None, description="Additional context")
    suggestions: Optional[List[str]] = Field(default=None, description="How to resolve it")
    code: Optional[str] = Field(default=None, description="Error code")


# ============================================================================
# PART 3: HELPERS (bridge between exceptions and payloads)
# ============================================================================


def validation_error(
    field: str, value: Any, reason: str, message: Optional[str] = None
) -> ErrorResponse:
    """
    Build a validation payload with field details.

    Args:
        field: Field that failed
        value: Value received
        reason: Reason of the failure (e.g., "not_a_collection")
        message: Custom message (optional)
    """
    default_message = f"Validation failed for field '{field}'"

    return ErrorResponse(
        error_type=ErrorType.VALIDATION,
        message=message or default_message,
        details=[
            ErrorDetail(
                field=field,
                value=value,
                reason=reason,
                message=message or f"Invalid value for {field}: {reason}",
            )
        ],
        code="validation_error",
    )


def not_found_error(resource: str, identifier: str) -> ErrorResponse:
    """Build a payload for a missing resource."""
    return ErrorResponse(
        error_type=ErrorType.NOT_FOUND,
        message=f"{resource.capitalize()} not found: {identifier}",
        context={"resource": resource, "identifier": identifier},
        suggestions=[f"Verify that the {resource} was indexed", f"Check the {resource} id"],
        code="not_found",
    )


def from_exception(exc: ContextRankError) -> ErrorResponse:
    """
    Convert a ContextRankError into an ErrorResponse.

    Args:
        exc: Exception to convert

    Returns:
        ErrorResponse ready to serialize
    """
    error_type_map = {
        "ValidationError": ErrorType.VALIDATION,
        "InvalidFilterError": ErrorType.INVALID_FILTER,
        "CapacityExceededError": ErrorType.CAPACITY_EXCEEDED,
        "NotFoundError": ErrorType.NOT_FOUND,
        "AccessDeniedError": ErrorType.ACCESS_DENIED,
        "ProviderUnavailableError": ErrorType.PROVIDER_UNAVAILABLE,
        "ConfigurationError": ErrorType.CONFIGURATION,
    }

    error_type = error_type_map.get(type(exc).__name__, ErrorType.INTERNAL)

    return ErrorResponse(
        error_type=error_type,
        message=exc.message,
        error_id=exc.id,
        context=exc.context,
        suggestions=exc.suggestions or None,
        code=exc.code,
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    # Python exceptions
    "ContextRankError",
    "ConfigurationError",
    "ValidationError",
    "InvalidFilterError",
    "CapacityExceededError",
    "NotFoundError",
    "AccessDeniedError",
    "ProviderUnavailableError",
    "EngineShutdownError",
    # Payload models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    # Helpers
    "validation_error",
    "not_found_error",
    "from_exception",
]
