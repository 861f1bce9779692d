"""Protocol for the external content index."""

from __future__ import annotations

from typing import Protocol

from rag_core.models.domain import RetrievalPlan, RetrievedChunk


class ContentIndex(Protocol):
    async def search(self, query: str, plan: RetrievalPlan) -> list[RetrievedChunk]: ...

    @property
    def size(self) -> int: ...
