"""In-process hybrid content index: BM25 + hashed embeddings fused with RRF.

Serves as the reference ``ContentIndex`` for the evaluation harness, the
default application wiring, and integration tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace

import numpy as np
from rank_bm25 import BM25Okapi

from rag_core.models.domain import RetrievalPlan, RetrievedChunk
from rag_core.observability.logger import get_logger
from rag_core.retrieval.rrf import reciprocal_rank_fusion
from rag_core.signals.embedding import HashedEmbedder
from rag_core.signals.tokenizer import tokenize

logger = get_logger("memory_index")


class InMemoryIndex:
    def __init__(self, embedder: HashedEmbedder | None = None, rrf_k: int = 60) -> None:
        self._embedder = embedder or HashedEmbedder()
        self._rrf_k = rrf_k
        self._chunks: list[RetrievedChunk] = []
        self._bm25: BM25Okapi | None = None
        self._vectors: np.ndarray | None = None
        self._write_lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._chunks)

    def add(self, chunks: Iterable[RetrievedChunk]) -> None:
        """Add chunks (replacing any with the same id) and rebuild the index."""
        by_id = {c.id: c for c in self._chunks}
        for chunk in chunks:
            by_id[chunk.id] = chunk
        self._build(list(by_id.values()))

    async def add_async(self, chunks: Iterable[RetrievedChunk]) -> None:
        async with self._write_lock:
            await asyncio.to_thread(self.add, list(chunks))

    def _build(self, chunks: list[RetrievedChunk]) -> None:
        self._chunks = chunks
        tokenized = [tokenize(c.content) or [""] for c in chunks]
        self._bm25 = BM25Okapi(tokenized) if tokenized else None
        if chunks:
            self._vectors = np.vstack([self._embedder.encode(c.content) for c in chunks])
        else:
            self._vectors = None
        logger.info("index_built", size=len(chunks))

    async def search(self, query: str, plan: RetrievalPlan) -> list[RetrievedChunk]:
        return await asyncio.to_thread(self._search, query, plan)

    def _search(self, query: str, plan: RetrievalPlan) -> list[RetrievedChunk]:
        if not self._chunks or self._bm25 is None or self._vectors is None:
            return []

        candidates = [
            i for i, c in enumerate(self._chunks) if _matches_categories(c, plan.filters.categories)
        ]
        if not candidates:
            return []

        limit = plan.rerank_count
        lexical: list[tuple[str, float]] = []
        terms = tokenize(query)
        if terms:
            bm25_scores = self._bm25.get_scores(terms)
            ranked = sorted(candidates, key=lambda i: (-bm25_scores[i], self._chunks[i].id))
            lexical = [
                (self._chunks[i].id, float(bm25_scores[i])) for i in ranked if bm25_scores[i] > 0
            ][:limit]

        query_vector = self._embedder.encode(query)
        similarities = self._vectors @ query_vector
        ranked = sorted(candidates, key=lambda i: (-similarities[i], self._chunks[i].id))
        semantic = [
            (self._chunks[i].id, float(similarities[i])) for i in ranked if similarities[i] > 0
        ][:limit]

        fused = reciprocal_rank_fusion([lexical, semantic], k=self._rrf_k, normalize=True)
        by_id = {c.id: c for c in self._chunks}

        logger.info(
            "index_search",
            lexical_hits=len(lexical),
            semantic_hits=len(semantic),
            fused=len(fused),
        )
        return [replace(by_id[cid], score=score) for cid, score in fused[:limit]]


def _matches_categories(chunk: RetrievedChunk, categories: tuple[str, ...] | None) -> bool:
    if not categories:
        return True
    tags = chunk.metadata.tags if chunk.metadata else ()
    return bool(set(tags) & set(categories))
