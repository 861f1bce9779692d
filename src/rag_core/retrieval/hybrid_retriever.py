"""Hybrid retriever: timeout-guarded orchestration over the external content index."""

from __future__ import annotations

import asyncio

from rag_core.exceptions import RetrievalError
from rag_core.models.domain import RetrievalPlan, RetrievedChunk
from rag_core.observability.logger import get_logger
from rag_core.protocols.retriever import ContentIndex

logger = get_logger("hybrid_retriever")


class HybridRetriever:
    def __init__(self, index: ContentIndex, timeout_s: float = 5.0) -> None:
        self._index = index
        self._timeout_s = timeout_s

    async def retrieve(
        self,
        query: str,
        plan: RetrievalPlan,
        timeout_s: float | None = None,
    ) -> list[RetrievedChunk]:
        """Return candidates ordered by score, at most ``plan.rerank_count`` of them.

        Raises:
            RetrievalError: the index timed out or failed.
        """
        timeout = self._timeout_s if timeout_s is None else timeout_s
        try:
            raw = await asyncio.wait_for(self._index.search(query, plan), timeout=timeout)
        except TimeoutError as e:
            raise RetrievalError(f"content index timed out after {timeout:.1f}s") from e
        except Exception as e:
            raise RetrievalError(f"content index failed: {e}") from e

        candidates = [c for c in self._deduplicate(raw) if self._passes_filters(c, plan)]
        candidates.sort(key=lambda c: (-c.score, c.id))
        candidates = candidates[: plan.rerank_count]

        logger.info(
            "retrieval_results",
            strategy=plan.strategy,
            raw_count=len(raw),
            kept=len(candidates),
        )
        return candidates

    @staticmethod
    def _deduplicate(chunks: list[RetrievedChunk]) -> list[RetrievedChunk]:
        """Deduplicate by chunk id, keeping the highest score."""
        seen: dict[str, RetrievedChunk] = {}
        for c in chunks:
            existing = seen.get(c.id)
            if existing is None or c.score > existing.score:
                seen[c.id] = c
        return list(seen.values())

    @staticmethod
    def _passes_filters(chunk: RetrievedChunk, plan: RetrievalPlan) -> bool:
        filters = plan.filters
        if chunk.score < filters.min_score:
            return False
        if filters.sources and chunk.source not in filters.sources:
            return False
        timestamp = chunk.metadata.timestamp if chunk.metadata else None
        if timestamp is not None:
            for window in (filters.date_range, plan.time_range):
                if window is not None and not window.contains(timestamp):
                    return False
        return True
