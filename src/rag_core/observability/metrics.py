"""Metric recording helpers and the append-only analytics record."""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass
from typing import Protocol

from rag_core.observability.logger import get_logger

logger = get_logger("metrics")


@dataclass(frozen=True)
class MetricsRecord:
    user_id: str
    operation: str
    model: str
    request_tokens: int
    response_tokens: int
    cost_usd: float
    latency_ms: float
    confidence: float
    answerability: float
    citation_count: int
    cache_hit: bool
    request_fingerprint: str
    status: str

    def as_dict(self) -> dict:
        return asdict(self)


class MetricsSink(Protocol):
    async def log_metrics(self, record: MetricsRecord) -> None: ...


class LoggingMetricsSink:
    """Sink that writes each record as a structured log event."""

    async def log_metrics(self, record: MetricsRecord) -> None:
        logger.info("ai_log", **record.as_dict())


def request_fingerprint(query: str) -> str:
    normalized = " ".join(query.lower().split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]


def log_retrieval_metrics(
    trace_id: str,
    strategy: str,
    top_k: int,
    num_candidates: int,
    unique_sources: int,
) -> None:
    logger.info(
        "retrieval_metrics",
        trace_id=trace_id,
        strategy=strategy,
        top_k=top_k,
        num_candidates=num_candidates,
        unique_sources=unique_sources,
    )


def log_rerank_metrics(
    trace_id: str,
    input_count: int,
    output_count: int,
    top_scores: list[float],
) -> None:
    logger.info(
        "rerank_metrics",
        trace_id=trace_id,
        input_count=input_count,
        output_count=output_count,
        top_scores=[round(s, 4) for s in top_scores[:5]],
    )


def log_answerability_metrics(
    trace_id: str,
    evidence: float,
    coverage: float,
    coherence: float,
    confidence: float,
    can_answer: bool,
) -> None:
    logger.info(
        "answerability_metrics",
        trace_id=trace_id,
        evidence=round(evidence, 4),
        coverage=round(coverage, 4),
        coherence=round(coherence, 4),
        confidence=round(confidence, 4),
        can_answer=can_answer,
    )


def log_generation_metrics(
    trace_id: str,
    model: str,
    tokens_used: int,
    cost: float,
    proposed_citations: int,
    valid_citations: int,
    confidence: float,
) -> None:
    logger.info(
        "generation_metrics",
        trace_id=trace_id,
        model=model,
        tokens_used=tokens_used,
        cost=round(cost, 6),
        proposed_citations=proposed_citations,
        valid_citations=valid_citations,
        confidence=round(confidence, 4),
    )


def log_admission_decision(
    operation: str,
    priority: str,
    allowed: bool,
    action: str,
    reason: str,
    estimated_cost: float,
) -> None:
    logger.info(
        "admission_decision",
        operation=operation,
        priority=priority,
        allowed=allowed,
        action=action,
        reason=reason,
        estimated_cost=round(estimated_cost, 6),
    )
