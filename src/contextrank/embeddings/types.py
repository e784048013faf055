"""
Standard types for the embeddings module.

Vectors travel as float32 NumPy arrays inside the engine and as plain lists
on Item records.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np


VectorLike = Union[np.ndarray, Sequence[float]]


def as_vector(data: VectorLike) -> np.ndarray:
    """Convert to a 1-D float32 array."""
    vector = np.asarray(data, dtype=np.float32)
    if vector.ndim != 1:
        raise ValueError(f"Embedding must be one-dimensional, has shape {vector.shape}")
    return vector


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    dot(a, b) / (|a| |b|).

    A zero-norm vector gives 0.0 so orderings stay total. Vectors of
    different lengths are incomparable and also give 0.0.
    """
    va = as_vector(a)
    vb = as_vector(b)
    if va.shape != vb.shape:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb)) / (norm_a * norm_b)
    if not np.isfinite(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))


@dataclass
class EmbeddingVector:
    """Embedding with its dimension checked.

    Attributes:
        data: float32 NumPy array
        degraded: True when produced by the hash fallback
    """

    data: np.ndarray
    degraded: bool = False

    @classmethod
    def of(cls, data: VectorLike, dimension: int, degraded: bool = False) -> "EmbeddingVector":
        """
        Build and validate a vector.

        Raises:
            ValueError: If the vector does not have `dimension` components
        """
        vector = as_vector(data)
        if vector.shape[0] != dimension:
            raise ValueError(f"Embedding must have {dimension} dimensions, has {vector.shape[0]}")
        if not np.all(np.isfinite(vector)):
            raise ValueError("Embedding contains NaN or infinite values")
        return cls(data=vector, degraded=degraded)

    @property
    def list(self) -> List[float]:
        """For serialization onto Item.embedding."""
        return self.data.astype(np.float64).tolist()

    @property
    def dimension(self) -> int:
        return int(self.data.shape[0])

    def cosine_similarity(self, other: "EmbeddingVector") -> float:
        return cosine_similarity(self.data, other.data)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into vectors. May fail or time out."""

    def embed(self, text: str) -> Sequence[float]:
        ...

    def embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        ...


@runtime_checkable
class QueryExpansionProvider(Protocol):
    """Expands a query with synonyms / related terms."""

    def expand(self, text: str) -> str:
        ...


@dataclass
class EmbeddingOutcome:
    """Per-text result of a batch embedding call."""

    vector: Optional[EmbeddingVector] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.vector is not None
