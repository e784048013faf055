"""
Indexing Service - ingestion pipeline.

PIPELINE (per item):
1. Embedding → caller-supplied vector, provider, or degraded fallback
2. Postings → terms, tags, metadata entries, tenant and categories
3. Indices → inverted, metadata, tags, tenant (visibility last)
4. Store → item record written last
"""

from typing import Any, Dict, List, Optional

from contextrank.core.exceptions import (
    AccessDeniedError,
    CapacityExceededError,
    ContextRankError,
    NotFoundError,
    ProviderUnavailableError,
    ValidationError,
)
from contextrank.core.logging import PerformanceLogger, logger
from contextrank.core.tracing import MetricsCollector
from contextrank.core.utils.datetime_utils import utc_now
from contextrank.core.utils.deadline import Deadline
from contextrank.embeddings.service import EmbeddingService
from contextrank.embeddings.types import EmbeddingVector
from contextrank.index.index_set import IndexSet, postings_for
from contextrank.models.item import Item
from contextrank.storage.item_store import ItemStore

perf_logger = PerformanceLogger()


class IndexingService:
    """
    Creates, updates and deletes items.

    Writers of the same id serialize on the striped per-item lock of the
    IndexSet. Embeddings are computed before the lock is taken.
    """

    def __init__(
        self,
        indices: IndexSet,
        store: ItemStore,
        embeddings: EmbeddingService,
        chunk_size: int = 100,
        max_batch_size: int = 10000,
        fallback_on_ingest: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.indices = indices
        self.store = store
        self.embeddings = embeddings
        self.chunk_size = chunk_size
        self.max_batch_size = max_batch_size
        self.fallback_on_ingest = fallback_on_ingest
        self.metrics = metrics

        logger.info(
            "IndexingService initialized",
            chunk_size=chunk_size,
            max_batch_size=max_batch_size,
            fallback_on_ingest=fallback_on_ingest,
        )

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def index(self, item: Item) -> str:
        """
        Index a new item, or replace an existing one with the same id.

        Raises:
            ProviderUnavailableError: Embedding failed and fallback is off
            AccessDeniedError: The id exists under another tenant scope
            ValidationError: A supplied embedding has the wrong dimension
        """
        vector = self._embedding_for(item)
        self._publish(item, vector, must_exist=False)
        self._count("indexing.items")
        return item.id

    def update(self, item: Item) -> Item:
        """
        Replace an existing item and bump its version.

        Raises:
            NotFoundError: Unknown id
            AccessDeniedError: tenant_scope differs from the stored one
        """
        existing = self.store.get(item.id)
        if existing is None:
            raise NotFoundError(f"Item not found: {item.id}", context={"item_id": item.id})
        self._check_scope_unchanged(existing, item)

        vector = self._embedding_for(item)
        stored = self._publish(item, vector, must_exist=True)
        self._count("indexing.updates")
        return stored.model_copy(deep=True)

    def index_batch(self, items: List[Item]) -> Dict[str, bool]:
        """
        Index many items, isolating failures per item.

        Duplicate ids are indexed once, with the last occurrence winning.

        Returns:
            Each input id exactly once, in input order: True when indexed

        Raises:
            CapacityExceededError: More items than indexing.max_batch_size
        """
        if len(items) > self.max_batch_size:
            error = CapacityExceededError(
                f"Batch of {len(items)} items exceeds the limit of {self.max_batch_size}",
                limit=self.max_batch_size,
                requested=len(items),
            )
            error.add_suggestion("Split the batch into smaller requests")
            raise error

        latest: Dict[str, Item] = {}
        for item in items:
            latest[item.id] = item
        unique = list(latest.values())

        results: Dict[str, bool] = {item_id: False for item_id in latest}
        with perf_logger.measure("index_batch", size=len(unique)):
            for start in range(0, len(unique), self.chunk_size):
                chunk = unique[start : start + self.chunk_size]
                vectors = self._embed_chunk(chunk)

                for item in chunk:
                    vector = vectors.get(item.id)
                    if vector is None:
                        continue
                    try:
                        self._publish(item, vector, must_exist=False)
                        results[item.id] = True
                    except ContextRankError as e:
                        logger.warning("Item rejected in batch", item_id=item.id, error=e.message)
                    except Exception as e:
                        logger.error(
                            "Unexpected error indexing item", item_id=item.id, error=str(e)
                        )

        failed = sum(1 for ok in results.values() if not ok)
        self._count("indexing.items", len(results) - failed)
        if failed:
            self._count("indexing.failures", failed)

        logger.info("Batch indexed", items=len(results), failed=failed)
        return results

    # ------------------------------------------------------------------
    # Read / delete
    # ------------------------------------------------------------------

    def get(self, item_id: str, tenant_scope: Optional[str] = None) -> Item:
        """
        Raises:
            NotFoundError: Unknown id
            AccessDeniedError: Item belongs to another tenant scope
        """
        item = self.store.get(item_id)
        if item is None:
            raise NotFoundError(f"Item not found: {item_id}", context={"item_id": item_id})
        self._check_access(item, tenant_scope)
        return item.model_copy(deep=True)

    def delete(self, item_id: str, tenant_scope: Optional[str] = None) -> None:
        """
        Remove an item: visibility first, then the other indices, then the store.

        Raises:
            NotFoundError: Unknown id
            AccessDeniedError: Item belongs to another tenant scope
        """
        with self.indices.item_lock(item_id):
            item = self.store.get(item_id)
            if item is None:
                raise NotFoundError(f"Item not found: {item_id}", context={"item_id": item_id})
            self._check_access(item, tenant_scope)

            self.indices.retract(postings_for(item))
            self.store.delete(item_id)

        self._count("indexing.deletes")
        logger.info("Item deleted", item_id=item_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_access(item: Item, tenant_scope: Optional[str]) -> None:
        if item.tenant_scope != tenant_scope:
            raise AccessDeniedError(
                f"Item {item.id} is not visible from the requested tenant scope",
                context={"item_id": item.id, "reason": "tenant_mismatch"},
            )

    @staticmethod
    def _check_scope_unchanged(existing: Item, item: Item) -> None:
        if existing.tenant_scope != item.tenant_scope:
            raise AccessDeniedError(
                f"tenant_scope of item {item.id} cannot change",
                context={"item_id": item.id, "reason": "tenant_scope_immutable"},
            )

    def _supplied_vector(self, item: Item) -> Optional[EmbeddingVector]:
        """
        Caller-supplied embedding, if any.

        An embedding copied from the stored version while the content changed
        is stale and gets recomputed.
        """
        if item.embedding is None:
            return None
        existing = self.store.get(item.id)
        if (
            existing is not None
            and existing.embedding == item.embedding
            and existing.content != item.content
        ):
            return None
        try:
            return EmbeddingVector.of(item.embedding, self.embeddings.dimension)
        except ValueError as e:
            raise ValidationError(
                f"Invalid embedding for item {item.id}: {e}",
                context={"item_id": item.id, "field": "embedding"},
                cause=e,
            )

    def _embedding_for(self, item: Item) -> EmbeddingVector:
        supplied = self._supplied_vector(item)
        if supplied is not None:
            return supplied

        outcome = self.embeddings.embed_many(
            [item.to_search_text()], allow_fallback=self.fallback_on_ingest
        )[0]
        if outcome.vector is None:
            raise ProviderUnavailableError(
                f"Could not embed item {item.id}",
                code="EMBEDDING_FAILED",
                context={"item_id": item.id},
                cause=outcome.error,
            )
        return outcome.vector

    def _embed_chunk(self, chunk: List[Item]) -> Dict[str, EmbeddingVector]:
        """Vectors for a chunk; failed items are left out."""
        vectors: Dict[str, EmbeddingVector] = {}
        pending: List[Item] = []

        for item in chunk:
            try:
                supplied = self._supplied_vector(item)
            except ValidationError as e:
                logger.warning("Item rejected in batch", item_id=item.id, error=e.message)
                continue
            if supplied is not None:
                vectors[item.id] = supplied
            else:
                pending.append(item)

        if pending:
            outcomes = self.embeddings.embed_many(
                [item.to_search_text() for item in pending],
                allow_fallback=self.fallback_on_ingest,
                deadline=Deadline.none(),
            )
            for item, outcome in zip(pending, outcomes):
                if outcome.vector is not None:
                    vectors[item.id] = outcome.vector
                else:
                    logger.warning(
                        "Embedding failed for item",
                        item_id=item.id,
                        error=str(outcome.error),
                    )

        return vectors

    def _publish(self, item: Item, vector: EmbeddingVector, must_exist: bool) -> Item:
        """Write one item through every index and then the store."""
        with self.indices.item_lock(item.id):
            existing = self.store.get(item.id)
            if existing is None and must_exist:
                raise NotFoundError(f"Item not found: {item.id}", context={"item_id": item.id})

            now = utc_now()
            update: Dict[str, Any] = {
                "embedding": vector.list,
                "embedding_degraded": vector.degraded,
                "updated_at": now,
            }
            if existing is not None:
                self._check_scope_unchanged(existing, item)
                update["version"] = existing.version + 1
                update["created_at"] = existing.created_at
            else:
                update["version"] = max(1, item.version)

            stored = item.model_copy(update=update, deep=True)
            previous = postings_for(existing) if existing is not None else None

            self.indices.publish(postings_for(stored), previous)
            self.store.put(stored.id, stored)

        if vector.degraded:
            self._count("indexing.degraded")
        logger.debug("Item published", item_id=stored.id, version=stored.version)
        return stored

    def _count(self, name: str, value: float = 1.0) -> None:
        if self.metrics is not None:
            self.metrics.increment(name, value)
