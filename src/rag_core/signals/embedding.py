"""Deterministic hashed bag-of-words embedding.

A cheap similarity proxy, not a trained model. It backs the encoder
contract when no embedding service is configured and keeps tests free of
network calls.
"""

from __future__ import annotations

import math

import numpy as np

from rag_core.signals.tokenizer import words

DEFAULT_DIMENSIONS = 384


def _hash32(token: str) -> int:
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


class HashedEmbedder:
    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def encode(self, text: str) -> np.ndarray:
        tokens = [w for w in words(text) if len(w) > 2]
        vector = np.zeros(self._dimensions, dtype=np.float64)
        if not tokens:
            return vector
        increment = 1.0 / math.sqrt(len(tokens))
        for token in tokens:
            vector[abs(_hash32(token)) % self._dimensions] += increment
        norm = float(np.linalg.norm(vector))
        return vector / norm if norm > 0 else vector

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.encode(t).tolist() for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        return self.encode(query).tolist()


def cosine_similarity(a, b) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector is all zeros."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return max(-1.0, min(1.0, float(np.dot(va, vb)) / denom))


def rescale_similarity(similarity: float) -> float:
    """Map a cosine similarity from [-1, 1] onto [0, 1]."""
    return max(0.0, min(1.0, (similarity + 1.0) / 2.0))
