"""
Base models and common mixins.
Provides reusable functionality for all models.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from contextrank.core.id_generator import generate_id
from contextrank.core.utils.datetime_utils import utc_now


class TimestampMixin(BaseModel):
    """
    Mixin for automatic timestamps.
    Adds created_at and updated_at to any model.
    """

    created_at: datetime = Field(default_factory=utc_now, description="UTC creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="UTC last update timestamp")

    def touch(self) -> None:
        """Updates the modification timestamp."""
        self.updated_at = utc_now()


class ContextRankBaseModel(BaseModel):
    """
    Base model for every record of the engine.
    Common configuration and validation.
    """

    model_config = ConfigDict(
        # Validate values on assignment
        validate_assignment=True,
        # Use enum values
        use_enum_values=True,
        # Prevent extra fields
        extra="forbid",
        json_schema_extra={"additionalProperties": False},
    )


class FrozenModel(ContextRankBaseModel):
    """Immutable request/config record built with named fields."""

    model_config = ConfigDict(
        use_enum_values=True,
        extra="forbid",
        frozen=True,
    )


class StandardIdMixin(BaseModel):
    """
    Standard strategy with 'id' field.

    Ids are opaque to the engine; generated ones are hex32.
    """

    id: str = Field(default_factory=generate_id, min_length=1, description="Unique identifier")
