"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rag_core.api.dependencies import get_services
from rag_core.models.schemas import HealthResponse
from rag_core.pipeline.factory import Services

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(services: Services = Depends(get_services)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        indexed_chunks=services.index.size,
        circuit_breaker=services.controller.breaker.state,
    )
