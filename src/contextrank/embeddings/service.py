"""
Embedding service.

Wraps the configured provider with the cache, a blocking-call-with-timeout
on the provider pool, retries, and the deterministic degraded fallback.
"""

from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, List, Optional, TypeVar

from contextrank.core.exceptions import ProviderUnavailableError
from contextrank.core.logging import logger
from contextrank.core.tracing import MetricsCollector
from contextrank.core.utils.deadline import Deadline
from contextrank.core.utils.retry import retry_sync
from contextrank.embeddings.cache import EmbeddingCache
from contextrank.embeddings.providers import HashEmbeddingProvider
from contextrank.embeddings.types import EmbeddingOutcome, EmbeddingProvider, EmbeddingVector

T = TypeVar("T")


class EmbeddingService:
    """
    Single entry point for turning text into vectors.

    - embed(): queries; never fails, falls back to a degraded hash vector
    - embed_many(): ingestion chunks; per-text outcome, fallback optional
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: EmbeddingCache,
        executor: Executor,
        dimension: int,
        timeout_seconds: float = 10.0,
        max_attempts: int = 2,
        retry_delay: float = 0.1,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.executor = executor
        self.dimension = dimension
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.metrics = metrics
        self.fallback = HashEmbeddingProvider(dimension)

        logger.info(
            "EmbeddingService initialized",
            provider=type(provider).__name__,
            dimension=dimension,
            timeout_seconds=timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    def _call_once(self, fn: Callable[..., T], arg: Any, deadline: Deadline) -> T:
        """Run one provider call on the provider pool, bounded by timeout and deadline."""
        if deadline.expired():
            raise ProviderUnavailableError(
                "Deadline expired before provider call", code="DEADLINE_EXPIRED"
            )

        future = self.executor.submit(fn, arg)
        timeout = deadline.bound(self.timeout_seconds)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise ProviderUnavailableError(
                f"Embedding provider timed out after {timeout:.2f}s",
                code="PROVIDER_TIMEOUT",
                cause=e,
            )
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(
                f"Embedding provider failed: {e}", code="PROVIDER_ERROR", cause=e
            )

    def _call(self, fn: Callable[..., T], arg: Any, deadline: Deadline) -> T:
        return retry_sync(
            lambda: self._call_once(fn, arg, deadline),
            max_attempts=self.max_attempts,
            backoff="exponential",
            initial_delay=self.retry_delay,
            max_delay=1.0,
            retry_on=(ProviderUnavailableError,),
            logger=logger,
        )

    def _validated(self, raw: Any) -> EmbeddingVector:
        try:
            return EmbeddingVector.of(raw, self.dimension)
        except (ValueError, TypeError) as e:
            raise ProviderUnavailableError(
                f"Embedding provider returned an invalid vector: {e}",
                code="PROVIDER_BAD_VECTOR",
                cause=e,
            )

    def degraded_vector(self, text: str) -> EmbeddingVector:
        """Deterministic pseudo-embedding used in degraded mode."""
        if self.metrics is not None:
            self.metrics.increment("embeddings.degraded")
        return EmbeddingVector.of(self.fallback.embed(text), self.dimension, degraded=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed(self, text: str, deadline: Optional[Deadline] = None) -> EmbeddingVector:
        """
        Embed a single text (query path).

        Never raises for provider problems: on failure the result is a
        degraded hash vector with `degraded=True`.
        """
        deadline = deadline or Deadline.none()

        cached = self.cache.get(text)
        if cached is not None:
            return cached

        try:
            vector = self._validated(self._call(self.provider.embed, text, deadline))
        except ProviderUnavailableError as e:
            logger.warning("Embedding provider unavailable, using degraded vector", error=e.message)
            return self.degraded_vector(text)

        self.cache.set(text, vector)
        return vector

    def embed_many(
        self,
        texts: List[str],
        allow_fallback: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> List[EmbeddingOutcome]:
        """
        Embed a chunk of texts with a single batch call when possible.

        If the batch call fails every uncached text is retried on its own so
        one bad text does not fail its neighbours. Texts that still fail get
        a degraded vector when allow_fallback is set, otherwise an error.

        Returns:
            One outcome per input text, in input order
        """
        deadline = deadline or Deadline.none()
        outcomes: List[EmbeddingOutcome] = [EmbeddingOutcome() for _ in texts]

        pending: List[int] = []
        for i, text in enumerate(texts):
            cached = self.cache.get(text)
            if cached is not None:
                outcomes[i].vector = cached
            else:
                pending.append(i)

        if not pending:
            return outcomes

        batch_texts = [texts[i] for i in pending]
        try:
            raw_vectors = self._call(self.provider.embed_batch, batch_texts, deadline)
            if len(raw_vectors) != len(batch_texts):
                raise ProviderUnavailableError(
                    "Embedding provider returned a wrong number of vectors",
                    code="PROVIDER_BAD_BATCH",
                    context={"expected": len(batch_texts), "received": len(raw_vectors)},
                )
            vectors = [self._validated(raw) for raw in raw_vectors]
        except ProviderUnavailableError as e:
            logger.warning(
                "Batch embedding failed, embedding items one by one",
                batch_size=len(batch_texts),
                error=e.message,
            )
            vectors = None

        for position, i in enumerate(pending):
            if vectors is not None:
                outcomes[i].vector = vectors[position]
                self.cache.set(texts[i], vectors[position])
                continue

            try:
                vector = self._validated(self._call(self.provider.embed, texts[i], deadline))
                outcomes[i].vector = vector
                self.cache.set(texts[i], vector)
            except ProviderUnavailableError as e:
                if allow_fallback:
                    outcomes[i].vector = self.degraded_vector(texts[i])
                else:
                    outcomes[i].error = e

        return outcomes
