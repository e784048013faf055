"""
Tests for the data models: items, tool descriptors, tenants and filters.
"""

from datetime import datetime, timezone

import pytest

from contextrank.core.exceptions import InvalidFilterError
from contextrank.core.id_generator import generate_id, is_valid_id
from contextrank.core.utils.datetime_utils import set_mock_time, utc_now
from contextrank.models.item import Item
from contextrank.models.search import FilterCondition, FilterOperator, SearchRequest
from contextrank.models.tenant import TenantContext
from contextrank.models.tool import ToolDescriptor, describe_schema


class TestItem:
    """Field lookup and tool conventions."""

    def test_lookup_precedence(self) -> None:
        """Structured wins over numeric, numeric over array, then nested paths."""
        item = Item(
            content="x",
            structured_metadata={"name": "structured"},
            numeric_metadata={"name": 1.0, "price": 2.5},
            array_metadata={"price": [1, 2], "labels": ["a", "b"]},
            nested_metadata={"vendor": {"country": "fr"}},
            tags={"b", "a"},
        )

        assert item.lookup("name") == "structured"
        assert item.lookup("price") == 2.5
        assert item.lookup("labels") == ["a", "b"]
        assert item.lookup("vendor.country") == "fr"
        assert item.lookup("vendor.city") is None
        assert item.lookup("tags") == ["a", "b"]
        assert item.lookup("content") == "x"

    def test_generated_id(self) -> None:
        item = Item(content="x")
        assert is_valid_id(item.id)
        assert item.version == 1

    def test_categories_fall_back_to_tags(self) -> None:
        assert Item(content="x", tags={"z", "y"}).categories == ["y", "z"]
        assert Item(content="x", array_metadata={"categories": ["m"]}).categories == ["m"]

    def test_frozen_timestamps(self) -> None:
        frozen = datetime(2024, 1, 20, 10, 30, tzinfo=timezone.utc)
        set_mock_time(frozen)
        try:
            item = Item(content="x")
            item.touch()
            assert item.created_at == frozen
            assert item.updated_at == frozen
        finally:
            set_mock_time(None)
        assert utc_now() != frozen

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValueError):
            Item(content="x", owner="someone")


class TestToolDescriptor:
    """Conversion of tools into flat items."""

    @pytest.fixture
    def tool(self) -> ToolDescriptor:
        return ToolDescriptor(
            id="currency-converter",
            name="CurrencyConverter",
            description="Converts currency amounts using exchange rate",
            categories=["finance"],
            keywords=["currency", "forex"],
            input_schema={
                "properties": {"amount": {"type": "number"}, "to": {"type": "string"}},
                "required": ["amount", "to"],
            },
            examples=["convert 10 USD to EUR"],
            uses_external_api=True,
            metadata={"cost": 0.01, "owner": {"team": "payments"}},
            tenant_scope="acme",
        )

    def test_embedding_text(self, tool: ToolDescriptor) -> None:
        text = tool.to_embedding_text()

        assert text.startswith("Tool: CurrencyConverter\n")
        assert "Categories: finance\n" in text
        assert "Input: amount (number), to (string)\n" in text
        assert "Output: No schema defined\n" in text
        assert "- convert 10 USD to EUR\n" in text

    def test_to_item(self, tool: ToolDescriptor) -> None:
        item = tool.to_item()

        assert item.id == "currency-converter"
        assert item.tenant_scope == "acme"
        assert item.categories == ["finance"]
        assert item.keywords == ["currency", "forex"]
        assert item.required_inputs == ["amount", "to"]
        assert item.uses_external_api is True
        assert item.lookup("cost") == 0.01
        assert "owner" not in item.structured_metadata
        assert "finance" in item.tags

    def test_describe_schema(self) -> None:
        assert describe_schema({}) == "No schema defined"
        assert describe_schema({"type": "object"}) == "No fields"


class TestTenantContext:
    def test_scope_path(self) -> None:
        assert TenantContext(organization_id="acme").scope == "acme"
        assert TenantContext(organization_id="acme", project_id="web").scope == "acme/web"
        assert (
            str(TenantContext(organization_id="acme", project_id="web", subproject_id="api"))
            == "acme/web/api"
        )

    def test_subproject_needs_project(self) -> None:
        assert TenantContext(organization_id="acme", subproject_id="api").scope == "acme"


class TestFilterCondition:
    """Scalar, list and missing-value semantics."""

    def test_missing_values_never_match(self) -> None:
        not_equals = FilterCondition(operator=FilterOperator.NOT_EQUALS, value=1)
        assert not not_equals.matches(None)
        assert not not_equals.matches(float("nan"))

    def test_list_values(self) -> None:
        equals = FilterCondition(operator=FilterOperator.EQUALS, value="b")
        not_in = FilterCondition(operator=FilterOperator.NOT_IN, value=["x"])

        assert equals.matches(["a", "b"])
        assert not equals.matches(["a", "c"])
        assert not_in.matches(["a", "b"])
        assert not not_in.matches(["a", "x"])

    def test_string_operators(self) -> None:
        assert FilterCondition(operator=FilterOperator.CONTAINS, value="rren").matches("currency")
        assert FilterCondition(operator=FilterOperator.ENDS_WITH, value="ncy").matches("currency")
        assert not FilterCondition(operator=FilterOperator.REGEX, value="cur").matches("currency")

    def test_mixed_types_compare_as_strings(self) -> None:
        greater = FilterCondition(operator=FilterOperator.GREATER_THAN, value="10")
        assert greater.matches(9)

    def test_between_inclusive(self) -> None:
        between = FilterCondition(operator=FilterOperator.BETWEEN, value=1, second_value=3)
        assert between.matches(1)
        assert between.matches(3)
        assert not between.matches(3.5)

    def test_in_with_scalar_rejected(self) -> None:
        condition = FilterCondition(operator=FilterOperator.IN, value="gold")
        with pytest.raises(InvalidFilterError):
            condition.validate_condition("tier")


class TestSearchRequest:
    def test_effective_alpha(self) -> None:
        assert SearchRequest(query="q").effective_alpha(0.7) == 0.7
        assert SearchRequest(query="q", alpha=-2).effective_alpha(0.7) == 0.0
        assert SearchRequest(query="q", alpha=0.25).effective_alpha(0.7) == 0.25

    def test_immutable(self) -> None:
        request = SearchRequest(query="q")
        with pytest.raises(ValueError):
            request.query = "other"

    def test_ids_are_unique(self) -> None:
        assert len({generate_id() for _ in range(100)}) == 100
        assert not is_valid_id("A" * 32)
        assert not is_valid_id("abc")
