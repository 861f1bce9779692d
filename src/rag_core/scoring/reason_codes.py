"""Machine-readable reasons attached to responses and decisions."""

from __future__ import annotations

from enum import StrEnum


class ReasonCode(StrEnum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    COST_BLOCKED = "COST_BLOCKED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    RATE_LIMITED = "RATE_LIMITED"
    BUDGET_QUOTA_EXCEEDED = "BUDGET_QUOTA_EXCEEDED"
    ADMISSION_ERROR = "ADMISSION_ERROR"
    NO_RESULTS = "NO_RESULTS"
    INSUFFICIENT_EVIDENCE = "INSUFFICIENT_EVIDENCE"
    UNCOVERED_ASPECTS = "UNCOVERED_ASPECTS"
    CONTRADICTORY_SOURCES = "CONTRADICTORY_SOURCES"
    LOW_ANSWERABILITY = "LOW_ANSWERABILITY"
    RERANK_FALLBACK = "RERANK_FALLBACK"
    CITATIONS_DROPPED = "CITATIONS_DROPPED"
    DANGLING_CITATION = "DANGLING_CITATION"
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"
    GENERATION_FAILED = "GENERATION_FAILED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
