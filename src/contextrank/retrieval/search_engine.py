"""
Search engine: the five search modes over a resolved candidate set.

Flow of one search:
1. Validate the request
2. Resolve candidates (tenant, tags, metadata filters)
3. Embed and/or expand the query
4. Score candidates in batches on the worker pool, checking the deadline
5. Rank, apply the sort spec, truncate and project fields on copies of the items
"""

import time
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional, Set, Tuple

from contextrank.core.exceptions import ProviderUnavailableError
from contextrank.core.logging import SensitiveDataMasker, logger
from contextrank.core.tracing import MetricsCollector, tracer
from contextrank.core.utils.deadline import Deadline
from contextrank.core.utils.text import tokenize
from contextrank.embeddings.service import EmbeddingService
from contextrank.embeddings.types import EmbeddingVector, QueryExpansionProvider, cosine_similarity
from contextrank.index.index_set import IndexSet
from contextrank.models.search import Match, SearchMode, SearchRequest, SortSpec
from contextrank.retrieval.filters import CandidateResolver, validate_request
from contextrank.retrieval.keyword import ALL_TERMS_BONUS, keyword_score
from contextrank.storage.item_store import ItemStore

DEFAULT_ALPHA = {
    SearchMode.VECTOR_ONLY.value: 1.0,
    SearchMode.KEYWORD_ONLY.value: 0.0,
    SearchMode.HYBRID.value: 0.7,
    SearchMode.FILTERED_VECTOR.value: 1.0,
    SearchMode.SEMANTIC_KEYWORD.value: 0.0,
}

_KEYWORD_MODES = (SearchMode.KEYWORD_ONLY, SearchMode.SEMANTIC_KEYWORD)

_masker = SensitiveDataMasker()


class _QueryPlan:
    """Per-request state shared by every scoring batch."""

    __slots__ = ("mode", "alpha", "vector", "terms", "phrase", "all_terms_ids", "degraded")

    def __init__(self, mode: SearchMode, alpha: float) -> None:
        self.mode = mode
        self.alpha = alpha
        self.vector: Optional[EmbeddingVector] = None
        self.terms: List[str] = []
        self.phrase = ""
        self.all_terms_ids: Set[str] = set()
        self.degraded = False


class SearchEngine:
    """
    Scores candidate items for a query.

    Modes:
    - vector_only / filtered_vector: cosine similarity to the query vector
    - keyword_only: keyword score over items containing a query term
    - hybrid: alpha * vector + (1 - alpha) * keyword, all-terms bonus
    - semantic_keyword: keyword scoring of the expanded query
    """

    def __init__(
        self,
        indices: IndexSet,
        store: ItemStore,
        embeddings: EmbeddingService,
        expander: QueryExpansionProvider,
        executor: Executor,
        provider_executor: Executor,
        max_results: int = 100,
        default_max_results: int = 10,
        scoring_batch_size: int = 256,
        parallelism: int = 4,
        default_alpha: Optional[Dict[str, float]] = None,
        default_deadline_ms: Optional[float] = None,
        expansion_timeout: float = 10.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.indices = indices
        self.store = store
        self.embeddings = embeddings
        self.expander = expander
        self.executor = executor
        self.provider_executor = provider_executor
        self.resolver = CandidateResolver(indices, store)
        self.max_results = max_results
        self.default_max_results = default_max_results
        self.scoring_batch_size = scoring_batch_size
        self.parallelism = max(1, parallelism)
        self.default_alpha = {**DEFAULT_ALPHA, **(default_alpha or {})}
        self.default_deadline_ms = default_deadline_ms
        self.expansion_timeout = expansion_timeout
        self.metrics = metrics

        logger.info(
            "SearchEngine initialized",
            max_results=max_results,
            scoring_batch_size=scoring_batch_size,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def search(self, request: SearchRequest) -> List[Match]:
        """
        Run a search.

        Raises:
            ValidationError: Malformed request (before any index access)
            AccessDeniedError: Unscoped request on an engine with scoped items
        """
        validate_request(request, self.max_results)

        start = time.perf_counter()
        timeout_ms = request.timeout_ms
        if timeout_ms is None:
            timeout_ms = self.default_deadline_ms
        deadline = Deadline(timeout_ms)
        mode = request.search_mode

        with tracer.span("resolve_candidates", {"filters": len(request.filters)}):
            candidates = self.resolver.resolve(request)

        plan = self._plan(request, mode, deadline)

        if mode in _KEYWORD_MODES:
            candidates &= self.indices.inverted.ids_with_any(plan.terms)
        elif mode == SearchMode.HYBRID and plan.terms:
            plan.all_terms_ids = self.indices.inverted.ids_with_all(plan.terms)

        with tracer.span("score_candidates", {"mode": mode.value, "candidates": len(candidates)}):
            matches, partial = self._score_all(sorted(candidates), plan, deadline)

        if mode in _KEYWORD_MODES:
            matches = [m for m in matches if m.score > 0.0]

        matches.sort(key=lambda m: (-m.score, m.item_id))
        if request.sort:
            matches = sort_matches(matches, request.sort)

        limit = request.max_results or self.default_max_results
        results = matches[:limit]

        for match in results:
            # Callers get copies; the stored record stays owned by the indices
            match.item = match.item.model_copy(deep=True)
            match.partial = partial
            if request.fields:
                match.fields = {name: match.lookup(name) for name in request.fields}

        elapsed_ms = (time.perf_counter() - start) * 1000
        if self.metrics is not None:
            self.metrics.increment("search.requests")
            self.metrics.increment(f"search.mode.{mode.value}")
            self.metrics.record("search.last_latency_ms", elapsed_ms)
            if partial:
                self.metrics.increment("search.partial")
            if plan.degraded:
                self.metrics.increment("search.degraded")

        logger.info(
            "Search completed",
            query=_masker.preview(request.query),
            mode=mode.value,
            candidates=len(candidates),
            returned=len(results),
            degraded=plan.degraded,
            partial=partial,
            duration_ms=round(elapsed_ms, 2),
        )
        return results

    # ------------------------------------------------------------------
    # Query preparation
    # ------------------------------------------------------------------

    def _plan(self, request: SearchRequest, mode: SearchMode, deadline: Deadline) -> _QueryPlan:
        plan = _QueryPlan(mode, request.effective_alpha(self.default_alpha[mode.value]))
        plan.phrase = request.query

        query_text = request.query
        if mode == SearchMode.SEMANTIC_KEYWORD:
            query_text, expanded = self._expand(request.query, deadline)
            plan.degraded = not expanded

        if mode.uses_vectors:
            plan.vector = self.embeddings.embed(request.query, deadline)
            plan.degraded = plan.degraded or plan.vector.degraded

        plan.terms = tokenize(query_text)
        return plan

    def _expand(self, query: str, deadline: Deadline) -> Tuple[str, bool]:
        """Expanded query text and whether expansion succeeded."""
        if deadline.expired():
            logger.warning("Deadline expired before query expansion")
            return query, False

        future = self.provider_executor.submit(self.expander.expand, query)
        try:
            expanded = future.result(timeout=deadline.bound(self.expansion_timeout))
        except FutureTimeoutError:
            future.cancel()
            logger.warning("Query expansion timed out, using original query")
            return query, False
        except ProviderUnavailableError as e:
            logger.warning("Query expansion unavailable, using original query", error=e.message)
            return query, False
        except Exception as e:
            logger.warning("Query expansion failed, using original query", error=str(e))
            return query, False

        if not isinstance(expanded, str) or not expanded.strip():
            logger.warning("Query expansion returned nothing, using original query")
            return query, False
        return expanded, True

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_all(
        self, candidate_ids: List[str], plan: _QueryPlan, deadline: Deadline
    ) -> Tuple[List[Match], bool]:
        """
        Score candidates in batches, a wave of `parallelism` batches at a time.

        The first wave always runs. Before each later wave the deadline is
        checked; on expiry the matches scored so far are returned as partial.
        """
        size = self.scoring_batch_size
        batches = [candidate_ids[i : i + size] for i in range(0, len(candidate_ids), size)]

        matches: List[Match] = []
        for wave_start in range(0, len(batches), self.parallelism):
            if wave_start > 0 and deadline.expired():
                logger.warning(
                    "Search deadline expired, returning partial results",
                    scored=len(matches),
                    candidates=len(candidate_ids),
                )
                return matches, True

            wave = batches[wave_start : wave_start + self.parallelism]
            futures = [self.executor.submit(self._score_batch, batch, plan) for batch in wave]
            for future in futures:
                matches.extend(future.result())

        return matches, False

    def _score_batch(self, batch: List[str], plan: _QueryPlan) -> List[Match]:
        mode = plan.mode
        needs_keywords = mode in _KEYWORD_MODES or mode == SearchMode.HYBRID
        results = []

        for item_id in batch:
            item = self.store.get(item_id)
            if item is None:
                # Indexed but not yet (or no longer) stored
                continue

            vector_score: Optional[float] = None
            kw_score: Optional[float] = None

            if plan.vector is not None:
                item_vector = self.store.get_vector(item_id)
                vector_score = (
                    cosine_similarity(plan.vector.data, item_vector)
                    if item_vector is not None
                    else 0.0
                )

            if needs_keywords:
                kw_score = keyword_score(
                    plan.terms,
                    self.indices.inverted.term_counts(item_id),
                    item.content,
                    plan.phrase,
                )
                if item_id in plan.all_terms_ids:
                    kw_score = min(1.0, kw_score + ALL_TERMS_BONUS)

            if mode == SearchMode.HYBRID:
                score = plan.alpha * (vector_score or 0.0)
                score += (1.0 - plan.alpha) * (kw_score or 0.0)
            elif mode in _KEYWORD_MODES:
                score = kw_score or 0.0
            else:
                score = vector_score or 0.0

            degraded = plan.degraded or (plan.vector is not None and item.embedding_degraded)
            results.append(
                Match(
                    item=item,
                    score=score,
                    mode=mode.value,
                    vector_score=vector_score,
                    keyword_score=kw_score,
                    degraded=degraded,
                )
            )

        return results


def _sort_key(value: Any, as_string: bool) -> Tuple[Any, ...]:
    if value is None:
        return (0,)
    return (1, str(value) if as_string else value)


def sort_matches(matches: List[Match], specs: List[SortSpec]) -> List[Match]:
    """
    Stable multi-key sort.

    Ascending puts nulls first, descending puts nulls last. Keys whose values
    are not mutually ordered are compared as strings.
    """
    result = list(matches)
    for spec in reversed(specs):
        values = {id(m): m.lookup(spec.field) for m in result}
        try:
            result = sorted(
                result, key=lambda m: _sort_key(values[id(m)], False), reverse=not spec.ascending
            )
        except TypeError:
            result = sorted(
                result, key=lambda m: _sort_key(values[id(m)], True), reverse=not spec.ascending
            )
    return result
