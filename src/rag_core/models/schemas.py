"""Pydantic models for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ResponseStatus = Literal[
    "answered",
    "cost_blocked",
    "no_results",
    "unanswerable",
    "fallback",
    "validation_error",
    "deadline_exceeded",
]


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime | None = None


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class QueryFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_range: DateRange | None = None
    categories: list[str] | None = None
    sources: list[str] | None = None
    min_score: float | None = None


class UserPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: Literal["fr", "en"] | None = None
    response_style: Literal["concise", "detailed"] = "concise"
    citation_style: Literal["inline", "footer"] = "inline"


class QueryOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_results: int | None = Field(default=None, ge=1, le=50)
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    enable_reranking: bool = True
    use_local_only: bool = False


class QueryRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    user_id: str = "anonymous"
    conversation: list[ConversationTurn] = Field(default_factory=list)
    filters: QueryFilters | None = None
    preferences: UserPreferences | None = None
    options: QueryOptions = Field(default_factory=QueryOptions)
    priority: Literal["critical", "high", "medium", "low"] | None = None
    deadline_ms: int | None = Field(default=None, gt=0)


class TextSpan(BaseModel):
    start: int
    end: int


class Citation(BaseModel):
    id: str
    text: str
    source_id: str
    confidence: float = Field(ge=0.0, le=1.0)
    spans: list[TextSpan] = Field(default_factory=list)


class Source(BaseModel):
    id: str
    title: str
    content: str
    url: str | None = None


class RetrievalStats(BaseModel):
    total_candidates: int = 0
    after_rerank: int = 0
    strategy: str = "none"


class ResponseMetadata(BaseModel):
    request_id: str
    latency_ms: float
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    retrieval_stats: RetrievalStats = Field(default_factory=RetrievalStats)
    stage_latency_ms: dict[str, float] = Field(default_factory=dict)


class ReasoningStep(BaseModel):
    step: str
    reasoning: str
    confidence: float


class ReasoningTrace(BaseModel):
    steps: list[ReasoningStep]
    intent: dict
    plan: dict
    synthesis_strategy: str


class RAGResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    answer: str
    citations: list[Citation]
    confidence: float = Field(ge=0.0, le=1.0)
    answerability: float = Field(ge=0.0, le=1.0)
    sources: list[Source]
    metadata: ResponseMetadata
    status: ResponseStatus
    reasons: list[str] = Field(default_factory=list)
    reasoning: ReasoningTrace | None = None


class AdmissionRequest(BaseModel):
    operation: str
    estimated_tokens: int = Field(ge=0)
    estimated_cost: float = Field(ge=0.0)
    priority: Literal["critical", "high", "medium", "low"] = "medium"
    user_id: str | None = None


class AlternativeSchema(BaseModel):
    description: str
    cost: float
    quality: float


class AdmissionResponse(BaseModel):
    allowed: bool
    reason: str
    suggested_action: str
    estimated_cost: float
    priority: str
    alternatives: list[AlternativeSchema]
    backoff_delay: float | None = None
    batch_id: str | None = None
    cache_hit: bool = False
    reason_code: str | None = None


class HealthResponse(BaseModel):
    status: str
    indexed_chunks: int
    circuit_breaker: str


class BreakerStatus(BaseModel):
    state: str
    failure_count: int
    last_failure: float | None = None


class MetricsResponse(BaseModel):
    successful: int
    failed: int
    cached: int
    batched: int
    hourly_cost: float
    daily_cost: float
    monthly_cost: float
    avg_latency_ms: float
    p50_latency_ms: float
    p95_latency_ms: float
    cache_hit_rate: float
    batch_efficiency: float
    circuit_breaker: BreakerStatus


class EvaluationRequest(BaseModel):
    user_id: str = "evaluation"


class EvalCaseReport(BaseModel):
    case_id: str
    query: str
    category: str
    difficulty: str
    status: str
    answer: str
    confidence: float
    passed: bool
    overall_score: float
    latency_ms: float
    cost: float
    citation_accuracy: float = 0.0
    hallucination_rate: float = 0.0
    quality: dict[str, float] | None = None
    sources: list[str] = Field(default_factory=list)
    error: str | None = None


class EvaluationResponse(BaseModel):
    overall_score: float
    pass_rate: float
    metrics: dict
    category_breakdown: dict[str, dict]
    recommendations: list[str]
    results: list[EvalCaseReport]
    timestamp: datetime
    version: str
