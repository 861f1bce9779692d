"""Evaluation endpoint: run the labeled battery through the live pipeline."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from rag_core.api.dependencies import get_harness
from rag_core.evaluation.runner import EvaluationHarness
from rag_core.models.schemas import EvaluationRequest, EvaluationResponse

router = APIRouter()


@router.post("/evaluation", response_model=EvaluationResponse)
async def evaluation(
    request: EvaluationRequest | None = None,
    harness: EvaluationHarness = Depends(get_harness),
) -> EvaluationResponse:
    result = await harness.run_evaluation(user_id=(request or EvaluationRequest()).user_id)
    return EvaluationResponse(**asdict(result))
