"""
Tool descriptor model.

Convenience record for invokable tools; converted to a flat Item before indexing.
"""

from typing import Any, Dict, List, Optional, Set

from pydantic import Field

from contextrank.core.id_generator import generate_id
from contextrank.models.base import ContextRankBaseModel
from contextrank.models.item import Item


def describe_schema(schema: Dict[str, Any]) -> str:
    """Render a JSON-schema-like mapping as "field (type), ..."."""
    if not schema:
        return "No schema defined"

    fields = []
    properties = schema.get("properties") or {}
    for name, definition in properties.items():
        field_type = definition.get("type") if isinstance(definition, dict) else None
        fields.append(f"{name} ({field_type})")

    return ", ".join(fields) if fields else "No fields"


class ToolDescriptor(ContextRankBaseModel):
    """Invokable tool with its schemas, categories and usage examples."""

    id: str = Field(default_factory=generate_id, min_length=1)
    name: str = Field(..., min_length=1)
    description: str = Field(..., description="What the tool does")
    categories: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    output_schema: Dict[str, Any] = Field(default_factory=dict)
    examples: List[str] = Field(default_factory=list)
    uses_external_api: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra scalar metadata")
    tags: Set[str] = Field(default_factory=set)
    tenant_scope: Optional[str] = None

    def to_embedding_text(self) -> str:
        """
        Rich text representation used as item content.

        Tool: <name>
        Description: <description>
        Categories: a, b
        Keywords: x, y
        Input: field (type), ...
        Output: field (type), ...
        Examples:
        - <example>
        """
        lines = [f"Tool: {self.name}", f"Description: {self.description}"]
        if self.categories:
            lines.append("Categories: " + ", ".join(self.categories))
        if self.keywords:
            lines.append("Keywords: " + ", ".join(self.keywords))
        lines.append("Input: " + describe_schema(self.input_schema))
        lines.append("Output: " + describe_schema(self.output_schema))
        if self.examples:
            lines.append("Examples:")
            lines.extend(f"- {example}" for example in self.examples)
        if "use_cases" in self.metadata:
            lines.append(f"Use cases: {self.metadata['use_cases']}")
        return "\n".join(lines) + "\n"

    def to_item(self) -> Item:
        """Flatten the descriptor into an indexable Item."""
        structured: Dict[str, Any] = {
            key: value
            for key, value in self.metadata.items()
            if value is None or isinstance(value, (bool, int, float, str))
        }
        structured["name"] = self.name
        structured["uses_external_api"] = self.uses_external_api

        return Item(
            id=self.id,
            content=self.to_embedding_text(),
            structured_metadata=structured,
            array_metadata={"categories": list(self.categories), "keywords": list(self.keywords)},
            nested_metadata={
                "input_schema": self.input_schema,
                "output_schema": self.output_schema,
            },
            tags=set(self.tags) | set(self.categories),
            tenant_scope=self.tenant_scope,
        )
