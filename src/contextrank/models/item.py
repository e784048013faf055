"""
Item model - the unit of retrieval.

Documents and tool descriptors share this single flat shape; extension data
lives in the optional metadata maps.
"""

from typing import Any, Dict, List, Optional, Set, Union

from pydantic import Field, field_validator

from contextrank.models.base import ContextRankBaseModel, StandardIdMixin, TimestampMixin

Scalar = Union[bool, int, float, str, None]

_MISSING = object()

BUILTIN_FIELDS = ("id", "content", "version", "tenant_scope", "tags")


class Item(StandardIdMixin, TimestampMixin, ContextRankBaseModel):
    """
    Indexed document or tool.

    The engine owns `version` and `embedding_degraded`: both are rewritten on
    every index/update call. `tenant_scope` cannot change once indexed.
    """

    content: str = Field(..., description="Text used for keyword scoring and embedding")
    embedding: Optional[List[float]] = Field(
        None, description="Fixed-length vector, None until generated"
    )
    structured_metadata: Dict[str, Scalar] = Field(
        default_factory=dict, description="Scalar fields (exact-match indexed)"
    )
    numeric_metadata: Dict[str, float] = Field(
        default_factory=dict, description="Numeric fields (range indexed)"
    )
    array_metadata: Dict[str, List[Scalar]] = Field(
        default_factory=dict, description="List fields, each element indexed"
    )
    nested_metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Nested maps addressable by dotted path"
    )
    tags: Set[str] = Field(default_factory=set, description="Free-form labels")
    tenant_scope: Optional[str] = Field(None, description="Opaque partition key")
    version: int = Field(1, ge=1, description="Bumped on every mutation")
    embedding_degraded: bool = Field(
        False, description="True when the vector came from the hash fallback"
    )

    @field_validator("tenant_scope")
    @classmethod
    def validate_tenant_scope(cls, v: Optional[str]) -> Optional[str]:
        """Empty scopes are rejected; use None for unscoped items."""
        if v is not None and not v.strip():
            raise ValueError("tenant_scope cannot be empty")
        return v

    # ------------------------------------------------------------------
    # Tool descriptor conventions
    # ------------------------------------------------------------------

    @property
    def categories(self) -> List[str]:
        """Categories of the item (array_metadata["categories"], else the tags)."""
        categories = self.array_metadata.get("categories")
        if categories:
            return [str(c) for c in categories if c is not None]
        return sorted(self.tags)

    @property
    def keywords(self) -> List[str]:
        return [str(k) for k in self.array_metadata.get("keywords", []) if k is not None]

    @property
    def input_schema(self) -> Dict[str, Any]:
        schema = self.nested_metadata.get("input_schema")
        return schema if isinstance(schema, dict) else {}

    @property
    def required_inputs(self) -> List[str]:
        required = self.input_schema.get("required", [])
        return [str(r) for r in required] if isinstance(required, list) else []

    @property
    def uses_external_api(self) -> bool:
        return bool(self.structured_metadata.get("uses_external_api", False))

    # ------------------------------------------------------------------
    # Field lookup
    # ------------------------------------------------------------------

    def lookup(self, field: str, default: Any = None) -> Any:
        """
        Resolve a field name for filtering, sorting and projection.

        Order: built-in fields, structured, numeric, array, then a dotted
        path into nested metadata.
        """
        if field in BUILTIN_FIELDS:
            value = getattr(self, field)
            return sorted(value) if field == "tags" else value
        if field in self.structured_metadata:
            return self.structured_metadata[field]
        if field in self.numeric_metadata:
            return self.numeric_metadata[field]
        if field in self.array_metadata:
            return self.array_metadata[field]

        current: Any = self.nested_metadata
        for part in field.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_search_text(self) -> str:
        """Text sent to the embedding provider."""
        return self.content
