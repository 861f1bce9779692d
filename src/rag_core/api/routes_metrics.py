"""Usage metrics endpoint."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from rag_core.api.dependencies import get_controller
from rag_core.cost.controller import AdmissionController
from rag_core.models.schemas import MetricsResponse

router = APIRouter()


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(controller: AdmissionController = Depends(get_controller)) -> MetricsResponse:
    return MetricsResponse(**asdict(await controller.get_metrics()))
