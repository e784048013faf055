"""
Search request models.

FilterCondition evaluation lives here so the linear-scan path of the
candidate resolver and the validation path share one definition.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import Field

from contextrank.core.exceptions import InvalidFilterError
from contextrank.models.base import FrozenModel
from contextrank.models.item import Item

_COLLECTIONS = (list, tuple, set, frozenset)


class SearchMode(str, Enum):
    """Scoring strategy of a search."""

    VECTOR_ONLY = "vector_only"
    KEYWORD_ONLY = "keyword_only"
    HYBRID = "hybrid"
    FILTERED_VECTOR = "filtered_vector"
    SEMANTIC_KEYWORD = "semantic_keyword"

    @property
    def uses_vectors(self) -> bool:
        return self in (SearchMode.VECTOR_ONLY, SearchMode.HYBRID, SearchMode.FILTERED_VECTOR)


class FilterOperator(str, Enum):
    """Operators supported by FilterCondition."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"


# A list-valued field satisfies these only when every element does
_NEGATIVE_OPERATORS = {FilterOperator.NOT_EQUALS, FilterOperator.NOT_IN}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def compare_values(a: Any, b: Any) -> int:
    """
    Three-way comparison.

    Values that are not mutually ordered fall back to comparing their
    string forms, which keeps every comparison defined.
    """
    try:
        if a < b:
            return -1
        if a > b:
            return 1
        return 0
    except TypeError:
        sa, sb = str(a), str(b)
        return (sa > sb) - (sa < sb)


class FilterCondition(FrozenModel):
    """
    Condition applied to one field of an item.

    Examples:
        FilterCondition(operator=FilterOperator.EQUALS, value="finance")
        FilterCondition(operator=FilterOperator.BETWEEN, value=10, second_value=20)
        FilterCondition(operator=FilterOperator.IN, value=["math", "finance"])
    """

    operator: FilterOperator
    value: Any = None
    second_value: Any = None

    def validate_condition(self, field_name: str = "") -> None:
        """
        Reject operator/value mismatches before any index is touched.

        Raises:
            InvalidFilterError: IN/NOT_IN without a collection, BETWEEN without
                a second value, or a REGEX that does not compile
        """
        context = {"field": field_name, "operator": self.operator, "value": self.value}

        if self.operator in (FilterOperator.IN, FilterOperator.NOT_IN):
            if not isinstance(self.value, _COLLECTIONS):
                error = InvalidFilterError(
                    f"Operator {self.operator} on '{field_name}' requires a collection value",
                    context={**context, "reason": "not_a_collection"},
                )
                error.add_suggestion("Pass a list of values, e.g. value=['a', 'b']")
                raise error

        if self.operator == FilterOperator.BETWEEN:
            if self.value is None or self.second_value is None:
                raise InvalidFilterError(
                    f"BETWEEN on '{field_name}' requires value and second_value",
                    context={**context, "reason": "missing_bound"},
                )

        if self.operator == FilterOperator.REGEX:
            try:
                re.compile(str(self.value))
            except re.error as e:
                raise InvalidFilterError(
                    f"Invalid regular expression for '{field_name}': {e}",
                    context={**context, "reason": "invalid_regex"},
                    cause=e,
                )

    def matches(self, field_value: Any) -> bool:
        """
        Evaluate the condition against a field value.

        None and NaN never match. List-valued fields match when any element does
        (every element, for NOT_EQUALS and NOT_IN).
        """
        if _is_missing(field_value):
            return False

        if isinstance(field_value, _COLLECTIONS):
            values = [v for v in field_value if not _is_missing(v)]
            if FilterOperator(self.operator) in _NEGATIVE_OPERATORS:
                return all(self._matches_scalar(v) for v in values)
            return any(self._matches_scalar(v) for v in values)

        return self._matches_scalar(field_value)

    def _matches_scalar(self, field_value: Any) -> bool:
        op = FilterOperator(self.operator)
        value = self.value

        if op == FilterOperator.EQUALS:
            return field_value == value
        if op == FilterOperator.NOT_EQUALS:
            return field_value != value
        if op == FilterOperator.GREATER_THAN:
            return compare_values(field_value, value) > 0
        if op == FilterOperator.LESS_THAN:
            return compare_values(field_value, value) < 0
        if op == FilterOperator.GREATER_EQUAL:
            return compare_values(field_value, value) >= 0
        if op == FilterOperator.LESS_EQUAL:
            return compare_values(field_value, value) <= 0
        if op == FilterOperator.BETWEEN:
            return (
                compare_values(field_value, value) >= 0
                and compare_values(field_value, self.second_value) <= 0
            )
        if op in (FilterOperator.IN, FilterOperator.NOT_IN):
            if not isinstance(value, _COLLECTIONS):
                raise InvalidFilterError(
                    f"Operator {op.value} requires a collection value",
                    context={"value": value, "reason": "not_a_collection"},
                )
            found = field_value in value
            return found if op == FilterOperator.IN else not found
        if op == FilterOperator.CONTAINS:
            return str(value) in str(field_value)
        if op == FilterOperator.STARTS_WITH:
            return str(field_value).startswith(str(value))
        if op == FilterOperator.ENDS_WITH:
            return str(field_value).endswith(str(value))
        if op == FilterOperator.REGEX:
            return re.fullmatch(str(value), str(field_value)) is not None

        return False


class SortSpec(FrozenModel):
    """One key of a multi-key sort."""

    field: str = Field(..., min_length=1)
    ascending: bool = True


class SearchRequest(FrozenModel):
    """
    Immutable search request.

    alpha=None and max_results=None take the configured per-mode defaults.
    """

    query: str = Field(..., description="Natural-language query")
    filters: Dict[str, FilterCondition] = Field(default_factory=dict)
    required_tags: Set[str] = Field(default_factory=set)
    excluded_tags: Set[str] = Field(default_factory=set)
    tenant_scope: Optional[str] = None
    mode: SearchMode = SearchMode.HYBRID
    alpha: Optional[float] = Field(None, description="Vector weight, clamped to [0, 1]")
    max_results: Optional[int] = None
    fields: List[str] = Field(default_factory=list, description="Projection list")
    sort: List[SortSpec] = Field(default_factory=list)
    timeout_ms: Optional[float] = Field(None, gt=0)

    @property
    def search_mode(self) -> SearchMode:
        return SearchMode(self.mode)

    def effective_alpha(self, default: float) -> float:
        """Request alpha (or the mode default) clamped to [0, 1]."""
        alpha = default if self.alpha is None else self.alpha
        return min(1.0, max(0.0, float(alpha)))


_MISSING = object()


@dataclass
class Match:
    """Item returned by a search, with its query-scoped scores."""

    item: Item
    score: float
    mode: str
    vector_score: Optional[float] = None
    keyword_score: Optional[float] = None
    degraded: bool = False
    partial: bool = False
    fields: Optional[Dict[str, Any]] = None
    scores: Dict[str, float] = field(default_factory=dict)

    @property
    def item_id(self) -> str:
        return self.item.id

    def lookup(self, name: str) -> Any:
        """Item field lookup, then the query-scoped scores."""
        value = self.item.lookup(name, _MISSING)
        if value is not _MISSING:
            return value
        if name in ("score", "vector_score", "keyword_score"):
            return getattr(self, name)
        if name.startswith("scores."):
            name = name[len("scores.") :]
        return self.scores.get(name)

    @property
    def explanation(self) -> str:
        """Short summary of how the match was found."""
        parts = []
        if self.vector_score is not None:
            parts.append(f"vector {self.vector_score:.2f}")
        if self.keyword_score is not None:
            parts.append(f"keyword {self.keyword_score:.2f}")
        detail = f" ({', '.join(parts)})" if parts else ""
        suffix = " [degraded]" if self.degraded else ""
        return f"Matched via {self.mode} search{detail}.{suffix}"
