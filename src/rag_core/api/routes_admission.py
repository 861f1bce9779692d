"""Admission endpoint: ask the cost controller whether an operation may run."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from rag_core.api.dependencies import get_controller
from rag_core.cost.controller import AdmissionController
from rag_core.models.schemas import AdmissionRequest, AdmissionResponse

router = APIRouter()


@router.post("/admission", response_model=AdmissionResponse)
async def admission(
    request: AdmissionRequest,
    controller: AdmissionController = Depends(get_controller),
) -> AdmissionResponse:
    decision = await controller.should_proceed(
        operation=request.operation,
        estimated_tokens=request.estimated_tokens,
        estimated_cost=request.estimated_cost,
        priority=request.priority,
        user_id=request.user_id,
    )
    return AdmissionResponse(**asdict(decision))
