"""Query endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rag_core.api.dependencies import get_orchestrator
from rag_core.models.schemas import QueryRequest, RAGResponse
from rag_core.pipeline.orchestrator import RAGOrchestrator

router = APIRouter()


@router.post("/query", response_model=RAGResponse)
async def query(
    request: QueryRequest,
    orchestrator: RAGOrchestrator = Depends(get_orchestrator),
) -> RAGResponse:
    return await orchestrator.query(request)
