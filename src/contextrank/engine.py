"""
Engine - the owner of every index, pool and collaborator.

Typical usage:

    engine = Engine()
    engine.index(Item(content="Convert between currencies", tenant_scope="acme"))
    matches = engine.search(SearchRequest(query="currency", tenant_scope="acme"))
    ranked = engine.score(matches, ScoringContext(actor_id="u1"))
    engine.shutdown()
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Union

from contextrank.core.exceptions import (
    ConfigurationError,
    EngineShutdownError,
    ValidationError,
)
from contextrank.core.logging import logger
from contextrank.core.secure_config import Settings
from contextrank.core.tracing import MetricsCollector
from contextrank.embeddings.cache import EmbeddingCache
from contextrank.embeddings.providers import HashEmbeddingProvider, OllamaEmbeddingProvider
from contextrank.embeddings.service import EmbeddingService
from contextrank.embeddings.types import EmbeddingProvider, QueryExpansionProvider
from contextrank.index.index_set import IndexSet
from contextrank.models.item import Item
from contextrank.models.scoring import ScoredMatch, ScoringContext, WeightProfile
from contextrank.models.search import Match, SearchRequest
from contextrank.retrieval.query_expansion import (
    LexicalVariantExpander,
    NoopQueryExpander,
    OllamaQueryExpander,
)
from contextrank.retrieval.search_engine import SearchEngine
from contextrank.scoring.relationships import RelationshipGraph
from contextrank.scoring.relevance import RelevanceScorer
from contextrank.scoring.usage import UsageLedger
from contextrank.scoring.weights import WeightProfileRegistry
from contextrank.services.indexing_service import IndexingService
from contextrank.storage.item_store import InMemoryItemStore, ItemStore


class Engine:
    """
    Tenant-isolated hybrid retrieval engine.

    The public API is synchronous. Scoring batches run on one thread pool
    and provider calls on another, so a slow provider cannot starve search.
    After shutdown() every operation raises EngineShutdownError.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        expander: Optional[QueryExpansionProvider] = None,
        store: Optional[ItemStore] = None,
    ):
        self.settings = settings or Settings()
        self.metrics = MetricsCollector()
        config = self.settings

        workers = config.get("search.workers", 4)
        self._search_pool = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="contextrank-search"
        )
        self._provider_pool = ThreadPoolExecutor(
            max_workers=max(2, workers), thread_name_prefix="contextrank-provider"
        )

        self.provider = embedding_provider or self._build_provider()
        self.expander = expander or self._build_expander()
        self.store = store or InMemoryItemStore()
        self.indices = IndexSet()

        dimension = config.get("embeddings.dimension", 768)
        self.cache = EmbeddingCache(
            max_size=config.get("cache.max_size", 10000),
            ttl_seconds=config.get("cache.ttl_seconds", 3600),
            namespace=f"{type(self.provider).__name__}:{config.get('embeddings.model', '')}",
            metrics=self.metrics,
        )
        self.embeddings = EmbeddingService(
            provider=self.provider,
            cache=self.cache,
            executor=self._provider_pool,
            dimension=dimension,
            timeout_seconds=config.get("embeddings.timeout_seconds", 10.0),
            max_attempts=config.get("embeddings.max_attempts", 2),
            metrics=self.metrics,
        )

        self.indexing = IndexingService(
            indices=self.indices,
            store=self.store,
            embeddings=self.embeddings,
            chunk_size=config.get("indexing.chunk_size", 100),
            max_batch_size=config.get("indexing.max_batch_size", 10000),
            fallback_on_ingest=config.get("embeddings.fallback_on_ingest", False),
            metrics=self.metrics,
        )
        self.search_engine = SearchEngine(
            indices=self.indices,
            store=self.store,
            embeddings=self.embeddings,
            expander=self.expander,
            executor=self._search_pool,
            provider_executor=self._provider_pool,
            max_results=config.get("search.max_results", 100),
            default_max_results=config.get("search.default_max_results", 10),
            scoring_batch_size=config.get("search.scoring_batch_size", 256),
            parallelism=workers,
            default_alpha=config.get("search.default_alpha"),
            default_deadline_ms=config.get("search.deadline_ms"),
            expansion_timeout=config.get("embeddings.timeout_seconds", 10.0),
            metrics=self.metrics,
        )

        self.ledger = UsageLedger()
        self.graph = RelationshipGraph()
        self.profiles = WeightProfileRegistry(
            default_profile=config.get("scoring.default_profile", "default"),
            custom_profiles=config.get("scoring.profiles") or {},
        )
        self.scorer = RelevanceScorer(
            ledger=self.ledger,
            graph=self.graph,
            profiles=self.profiles,
            diversity_threshold=config.get("scoring.diversity_threshold", 5),
            diversity_window=config.get("scoring.diversity_window", 10),
            metrics=self.metrics,
        )

        self._closed = False
        self._state_lock = threading.Lock()

        logger.info(
            "Engine initialized",
            provider=type(self.provider).__name__,
            expander=type(self.expander).__name__,
            dimension=dimension,
            workers=workers,
        )

    def _build_provider(self) -> EmbeddingProvider:
        name = self.settings.get("embeddings.provider", "hash")
        if name == "hash":
            return HashEmbeddingProvider(self.settings.get("embeddings.dimension", 768))
        if name == "ollama":
            return OllamaEmbeddingProvider(
                model=self.settings.get("embeddings.model", "nomic-embed-text"),
                base_url=self.settings.get("embeddings.url", "http://localhost:11434"),
                timeout=self.settings.get("embeddings.timeout_seconds", 10.0),
            )
        raise ConfigurationError(f"Unknown embedding provider: {name}")

    def _build_expander(self) -> QueryExpansionProvider:
        name = self.settings.get("expansion.provider", "lexical")
        if name == "lexical":
            return LexicalVariantExpander(
                max_variations=self.settings.get("expansion.max_variations", 5),
                min_term_length=self.settings.get("expansion.min_term_length", 3),
            )
        if name == "ollama":
            return OllamaQueryExpander(
                model=self.settings.get("expansion.model", "qwen2.5:3b"),
                base_url=self.settings.get("embeddings.url", "http://localhost:11434"),
                timeout=self.settings.get("embeddings.timeout_seconds", 10.0),
                max_variations=self.settings.get("expansion.max_variations", 5),
            )
        if name == "none":
            return NoopQueryExpander()
        raise ConfigurationError(f"Unknown expansion provider: {name}")

    def _check_open(self) -> None:
        if self._closed:
            raise EngineShutdownError("Engine has been shut down")

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def index(self, item: Item) -> str:
        self._check_open()
        return self.indexing.index(item)

    def index_batch(self, items: List[Item]) -> Dict[str, bool]:
        self._check_open()
        return self.indexing.index_batch(items)

    def update(self, item: Item) -> Item:
        self._check_open()
        return self.indexing.update(item)

    def get(self, item_id: str, tenant_scope: Optional[str] = None) -> Item:
        self._check_open()
        return self.indexing.get(item_id, tenant_scope)

    def delete(self, item_id: str, tenant_scope: Optional[str] = None) -> None:
        self._check_open()
        self.indexing.delete(item_id, tenant_scope)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def search(self, request: SearchRequest) -> List[Match]:
        self._check_open()
        return self.search_engine.search(request)

    def score(self, matches: List[Match], context: ScoringContext) -> List[ScoredMatch]:
        self._check_open()
        return self.scorer.score(matches, context)

    def search_and_score(
        self, request: SearchRequest, context: ScoringContext
    ) -> List[ScoredMatch]:
        """Search, then re-score the matches with every relevance signal."""
        return self.score(self.search(request), context)

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def record_usage(
        self,
        item_id: str,
        actor_id: str,
        success: bool,
        latency_ms: float,
        error: Optional[str] = None,
        satisfaction: Optional[float] = None,
        session_id: Optional[str] = None,
        state: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._check_open()
        self.ledger.record_usage(
            item_id,
            actor_id,
            success,
            latency_ms,
            error=error,
            satisfaction=satisfaction,
            session_id=session_id,
            state=state,
        )
        self.metrics.increment("usage.recorded")

    def record_relationship(self, a: str, b: str, kind: str, same_workflow: bool = True) -> None:
        self._check_open()
        self.graph.record(a, b, kind, same_workflow=same_workflow)

    def register_weight_profile(
        self, name: str, profile: Union[WeightProfile, Mapping[str, float]]
    ) -> None:
        self._check_open()
        if not isinstance(profile, WeightProfile):
            try:
                profile = WeightProfile(**profile)
            except ValueError as e:
                raise ValidationError(f"Invalid weight profile {name}: {e}", cause=e)
        self.profiles.register(name, profile)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "items": self.store.count(),
            "indices": self.indices.stats(),
            "cache": dict(self.cache.get_stats()),
            "usage": {
                "items": self.ledger.item_count(),
                "total_uses": self.ledger.total_uses(),
            },
            "relationships": self.graph.edge_count(),
            "weight_profiles": self.profiles.names(),
            "metrics": self.metrics.get_metrics(),
            "closed": self._closed,
        }

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work, flush the store and release the pools."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        self.store.flush()
        self._search_pool.shutdown(wait=wait)
        self._provider_pool.shutdown(wait=wait)
        for collaborator in (self.provider, self.expander):
            close = getattr(collaborator, "close", None)
            if callable(close):
                close()

        cache_stats = self.cache.get_stats()
        self.cache.clear()

        logger.info(
            "Engine shut down",
            items=self.store.count(),
            cache_hits=cache_stats["hits"],
            cache_misses=cache_stats["misses"],
            searches=self.metrics.get_metrics().get("search.requests", 0),
        )

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()
