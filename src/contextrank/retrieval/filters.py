"""
Candidate resolution for search requests.

Turns the tenant scope, tag constraints and metadata filters of a
SearchRequest into the set of item ids the search engine scores.
"""

import math
from typing import Optional, Set

from contextrank.core.exceptions import (
    AccessDeniedError,
    CapacityExceededError,
    ValidationError,
)
from contextrank.core.logging import logger
from contextrank.index.index_set import IndexSet
from contextrank.index.metadata import is_indexable_number
from contextrank.models.search import FilterCondition, FilterOperator, SearchRequest
from contextrank.storage.item_store import ItemStore


def validate_request(request: SearchRequest, max_results_ceiling: int) -> None:
    """
    Reject malformed requests before any index is touched.

    Raises:
        ValidationError: Empty query, bad alpha or bad max_results
        InvalidFilterError: A filter whose operator and value do not fit
        CapacityExceededError: max_results above the configured ceiling
    """
    if not isinstance(request.query, str) or not request.query.strip():
        raise ValidationError("Search query cannot be empty", context={"field": "query"})

    for field_name, condition in request.filters.items():
        condition.validate_condition(field_name)

    if request.alpha is not None and math.isnan(request.alpha):
        raise ValidationError("alpha must be a number", context={"field": "alpha"})

    if request.max_results is not None:
        if request.max_results < 1:
            raise ValidationError(
                "max_results must be at least 1",
                context={"field": "max_results", "value": request.max_results},
            )
        if request.max_results > max_results_ceiling:
            error = CapacityExceededError(
                f"max_results {request.max_results} exceeds the limit of {max_results_ceiling}",
                limit=max_results_ceiling,
                requested=request.max_results,
            )
            error.add_suggestion(f"Request at most {max_results_ceiling} results")
            raise error


class CandidateResolver:
    """
    Intersects index answers into a candidate id set.

    Pipeline:
    1. Tenant scope
    2. Required tags (intersection)
    3. Metadata filters (index lookup or linear scan, intersected per field)
    4. Excluded tags (subtraction)
    """

    def __init__(self, indices: IndexSet, store: ItemStore):
        self.indices = indices
        self.store = store

    def tenant_candidates(self, tenant_scope: Optional[str]) -> Set[str]:
        """
        Ids visible to a request.

        An unscoped request may only read an engine that holds no scoped
        items at all.
        """
        tenants = self.indices.tenants
        if tenant_scope is None:
            if tenants.has_scoped_items():
                raise AccessDeniedError(
                    "Request without tenant scope on an engine holding scoped items",
                    context={"reason": "missing_tenant_scope"},
                )
            return tenants.ids_for_scope(None)
        return tenants.ids_for_scope(tenant_scope)

    def resolve(self, request: SearchRequest) -> Set[str]:
        """Candidate ids for a request. An empty set is a valid answer."""
        candidates = self.tenant_candidates(request.tenant_scope)

        for tag in sorted(request.required_tags):
            if not candidates:
                break
            candidates &= self.indices.tags.ids_for(tag)

        for field_name, condition in request.filters.items():
            if not candidates:
                break
            candidates &= self._apply_filter(field_name, condition, candidates)

        if request.excluded_tags and candidates:
            candidates -= self.indices.tags.ids_for_any(request.excluded_tags)

        logger.debug(
            "Candidates resolved",
            tenant=request.tenant_scope,
            filters=len(request.filters),
            candidates=len(candidates),
        )
        return candidates

    def _apply_filter(
        self, field_name: str, condition: FilterCondition, candidates: Set[str]
    ) -> Set[str]:
        operator = FilterOperator(condition.operator)
        metadata = self.indices.metadata
        # Dotted paths into nested metadata are only evaluated by scanning
        indexable = "." not in field_name

        if (
            indexable
            and operator == FilterOperator.EQUALS
            and metadata.has_exact_field(field_name)
        ):
            return metadata.lookup_equals(field_name, condition.value)

        if (
            indexable
            and operator == FilterOperator.BETWEEN
            and is_indexable_number(condition.value)
            and is_indexable_number(condition.second_value)
            and metadata.supports_range(field_name)
        ):
            return metadata.lookup_between(
                field_name, float(condition.value), float(condition.second_value)
            )

        return self._scan(field_name, condition, candidates)

    def _scan(self, field_name: str, condition: FilterCondition, candidates: Set[str]) -> Set[str]:
        """Evaluate the condition against each candidate's stored value."""
        items = self.store.get_many(sorted(candidates))
        return {
            item_id
            for item_id, item in items.items()
            if condition.matches(item.lookup(field_name))
        }
