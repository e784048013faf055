"""
Embedding providers.

HashEmbeddingProvider is deterministic and offline; the engine also uses it
as the degraded-mode fallback when the configured provider fails.
"""

import hashlib
from typing import List, Optional, Sequence

import numpy as np

from contextrank.core.logging import logger
from contextrank.core.ollama import OllamaClient
from contextrank.core.utils.text import tokenize


class HashEmbeddingProvider:
    """
    Signed feature hashing of word tokens.

    Texts sharing words get positively correlated vectors, so the fallback
    keeps a rough lexical notion of similarity. Texts without any word
    token get a pseudo-random unit vector seeded from the text hash.
    Output is always unit-norm and reproducible across processes.
    """

    def __init__(self, dimension: int = 768):
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for token in tokenize(text):
            index, sign = self._bucket(token)
            vector[index] += sign

        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
            vector = np.random.default_rng(seed).standard_normal(self.dimension).astype(np.float32)
            norm = float(np.linalg.norm(vector))

        return vector / norm

    def embed(self, text: str) -> Sequence[float]:
        return self._vector(text)

    def embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        return [self._vector(text) for text in texts]


class OllamaEmbeddingProvider:
    """
    Embeddings from a local Ollama server (/api/embed).

    Raises ProviderUnavailableError on any failure.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        timeout: float = 10.0,
        client: Optional[OllamaClient] = None,
    ):
        self.model = model
        self.client = client or OllamaClient(base_url=base_url, timeout=timeout)
        logger.info("OllamaEmbeddingProvider initialized", model=model)

    def embed(self, text: str) -> Sequence[float]:
        return self.client.embed(self.model, [text])[0]

    def embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        if not texts:
            return []
        return self.client.embed(self.model, texts)

    def close(self) -> None:
        self.client.close()
