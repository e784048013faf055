"""
Tests for vectors, the embedding cache, the hash provider and EmbeddingService.
"""

import time
from unittest.mock import Mock

import numpy as np
import pytest

from contextrank.core.exceptions import ProviderUnavailableError
from contextrank.embeddings.cache import EmbeddingCache
from contextrank.embeddings.providers import HashEmbeddingProvider, OllamaEmbeddingProvider
from contextrank.embeddings.service import EmbeddingService
from contextrank.embeddings.types import EmbeddingVector, cosine_similarity


class TestCosineSimilarity:
    """Properties of the cosine used by every vector mode."""

    def test_identical_vectors(self) -> None:
        """A vector is perfectly similar to itself."""
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_symmetric_and_bounded(self) -> None:
        """cos(a, b) == cos(b, a) and stays in [-1, 1]."""
        a = [0.3, -1.2, 4.0]
        b = [2.0, 0.5, -0.1]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
        assert -1.0 <= cosine_similarity(a, b) <= 1.0
        assert cosine_similarity(a, [-x for x in a]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_norm_gives_zero(self) -> None:
        """A zero vector never produces NaN."""
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0

    def test_mismatched_lengths_give_zero(self) -> None:
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0


class TestEmbeddingVector:
    """Dimension and finiteness checks."""

    def test_wrong_dimension_rejected(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingVector.of([1.0, 2.0], dimension=3)

    def test_nan_rejected(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingVector.of([1.0, float("nan"), 0.0], dimension=3)

    def test_list_is_plain_floats(self) -> None:
        vector = EmbeddingVector.of(np.array([1, 2, 3]), dimension=3)
        assert vector.list == [1.0, 2.0, 3.0]
        assert vector.dimension == 3


class TestHashEmbeddingProvider:
    """Deterministic offline embeddings."""

    def test_deterministic(self) -> None:
        """Two providers give the same vector for the same text."""
        first = np.asarray(HashEmbeddingProvider(64).embed("convert currency"))
        second = np.asarray(HashEmbeddingProvider(64).embed("convert currency"))
        assert np.array_equal(first, second)

    def test_unit_norm(self) -> None:
        for text in ["adds two integers", "", "!!!"]:
            vector = np.asarray(HashEmbeddingProvider(128).embed(text))
            assert vector.shape == (128,)
            assert float(np.linalg.norm(vector)) == pytest.approx(1.0, abs=1e-5)

    def test_shared_words_correlate(self) -> None:
        """Texts sharing words are closer than unrelated texts."""
        provider = HashEmbeddingProvider(768)
        query = provider.embed("currency exchange")
        related = provider.embed("currency exchange rate")
        unrelated = provider.embed("measurement units")
        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    def test_invalid_dimension(self) -> None:
        with pytest.raises(ValueError):
            HashEmbeddingProvider(0)


class TestEmbeddingCache:
    """LRU + TTL cache behaviour."""

    def _vector(self, value: float = 1.0) -> EmbeddingVector:
        return EmbeddingVector.of([value, 0.0], dimension=2)

    def test_hit_and_miss(self) -> None:
        cache = EmbeddingCache(max_size=10, ttl_seconds=60)
        assert cache.get("a") is None
        cache.set("a", self._vector())
        assert cache.get("a") is not None

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)

    def test_lru_eviction(self) -> None:
        """The least recently used entry goes first."""
        cache = EmbeddingCache(max_size=2, ttl_seconds=60)
        cache.set("a", self._vector(1.0))
        cache.set("b", self._vector(2.0))
        cache.get("a")
        cache.set("c", self._vector(3.0))

        assert cache.get("b") is None
        assert cache.get("a") is not None
        assert cache.get("c") is not None
        assert cache.get_stats()["evictions"] == 1

    def test_ttl_expiry(self) -> None:
        cache = EmbeddingCache(max_size=10, ttl_seconds=0.01)
        cache.set("a", self._vector())
        time.sleep(0.05)
        assert cache.get("a") is None
        assert cache.size == 0

    def test_degraded_vectors_not_cached(self) -> None:
        cache = EmbeddingCache(max_size=10, ttl_seconds=60)
        cache.set("a", EmbeddingVector.of([1.0, 0.0], dimension=2, degraded=True))
        assert cache.get("a") is None

    def test_namespace_separates_models(self) -> None:
        """The same text under two namespaces maps to two keys."""
        first = EmbeddingCache(namespace="model-a")
        second = EmbeddingCache(namespace="model-b")
        assert first._generate_key("text") != second._generate_key("text")


class TestEmbeddingService:
    """Provider wrapping: cache, retry and degraded fallback."""

    def _service(self, provider, executor, dimension: int = 8) -> EmbeddingService:
        return EmbeddingService(
            provider=provider,
            cache=EmbeddingCache(max_size=100, ttl_seconds=60),
            executor=executor,
            dimension=dimension,
            timeout_seconds=2.0,
            max_attempts=2,
            retry_delay=0.0,
        )

    def test_embed_uses_cache(self, executor) -> None:
        """The provider is called once for a repeated text."""
        provider = Mock()
        provider.embed.return_value = [1.0] * 8
        service = self._service(provider, executor)

        first = service.embed("hello")
        second = service.embed("hello")

        assert provider.embed.call_count == 1
        assert not first.degraded
        assert np.array_equal(first.data, second.data)

    def test_embed_falls_back_when_provider_fails(self, executor) -> None:
        """A failing provider yields a deterministic degraded vector."""
        provider = Mock()
        provider.embed.side_effect = RuntimeError("model not loaded")
        service = self._service(provider, executor)

        vector = service.embed("hello")

        assert vector.degraded
        assert vector.dimension == 8
        assert provider.embed.call_count == 2
        expected = HashEmbeddingProvider(8).embed("hello")
        assert np.allclose(vector.data, expected)

    def test_embed_rejects_wrong_dimension(self, executor) -> None:
        """A provider returning the wrong size is treated as a failure."""
        provider = Mock()
        provider.embed.return_value = [1.0, 2.0]
        service = self._service(provider, executor)

        assert service.embed("hello").degraded

    def test_embed_many_isolates_failures(self, executor) -> None:
        """When the batch call fails each text is retried alone."""
        inner = HashEmbeddingProvider(8)
        provider = Mock()
        provider.embed_batch.side_effect = RuntimeError("batch failed")

        def embed(text: str):
            if text == "bad":
                raise RuntimeError("bad text")
            return inner.embed(text)

        provider.embed.side_effect = embed
        service = self._service(provider, executor)

        outcomes = service.embed_many(["good", "bad", "also good"])

        assert [o.ok for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, ProviderUnavailableError)

    def test_embed_many_with_fallback(self, executor) -> None:
        provider = Mock()
        provider.embed_batch.side_effect = RuntimeError("down")
        provider.embed.side_effect = RuntimeError("down")
        service = self._service(provider, executor)

        outcomes = service.embed_many(["a", "b"], allow_fallback=True)

        assert all(o.ok for o in outcomes)
        assert all(o.vector.degraded for o in outcomes)


class TestOllamaEmbeddingProvider:
    """Provider over a mocked Ollama client."""

    def test_embed_batch_single_call(self) -> None:
        client = Mock()
        client.embed.return_value = [[0.1, 0.2], [0.3, 0.4]]
        provider = OllamaEmbeddingProvider(model="nomic-embed-text", client=client)

        vectors = provider.embed_batch(["a", "b"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        client.embed.assert_called_once_with("nomic-embed-text", ["a", "b"])

    def test_empty_batch_skips_client(self) -> None:
        client = Mock()
        provider = OllamaEmbeddingProvider(client=client)
        assert provider.embed_batch([]) == []
        client.embed.assert_not_called()
