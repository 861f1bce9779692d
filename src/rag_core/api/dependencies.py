"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from rag_core.cost.controller import AdmissionController
from rag_core.evaluation.runner import EvaluationHarness
from rag_core.pipeline.factory import Services
from rag_core.pipeline.orchestrator import RAGOrchestrator


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_orchestrator(request: Request) -> RAGOrchestrator:
    return request.app.state.services.orchestrator


def get_controller(request: Request) -> AdmissionController:
    return request.app.state.services.controller


def get_harness(request: Request) -> EvaluationHarness:
    return request.app.state.services.harness
