"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Literal

Priority = Literal["critical", "high", "medium", "low"]
DegradationAction = Literal["proceed", "defer", "cache", "local", "batch"]
QueryType = Literal["factual", "procedural", "causal", "temporal", "entity", "comparative"]
AnswerType = Literal["short", "explanation", "list", "comparison", "process"]
RetrievalStrategy = Literal["semantic", "hybrid", "temporal", "entity-focused"]
BreakerState = Literal["closed", "open", "half-open"]

PRIORITIES: tuple[Priority, ...] = ("critical", "high", "medium", "low")


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class IntentAnalysis:
    type: QueryType
    complexity: float
    scope: tuple[str, ...]
    entities: tuple[str, ...]
    expected_answer_type: AnswerType
    temporal: TimeRange | None = None
    temporal_keywords: tuple[str, ...] = ()
    language: str = "en"


@dataclass(frozen=True)
class RetrievalFilters:
    """Hard filters (caller-supplied) plus advisory scope tags from the intent."""

    min_score: float
    categories: tuple[str, ...] | None = None
    scope: tuple[str, ...] = ()
    sources: tuple[str, ...] | None = None
    date_range: TimeRange | None = None


@dataclass(frozen=True)
class RetrievalPlan:
    strategy: RetrievalStrategy
    top_k: int
    filters: RetrievalFilters
    rerank_count: int
    include_metadata: bool
    time_range: TimeRange | None = None


@dataclass(frozen=True)
class ChunkMetadata:
    title: str | None = None
    author: str | None = None
    date: str | None = None
    timestamp: datetime | None = None
    tags: tuple[str, ...] = ()
    type: str | None = None


@dataclass(frozen=True)
class RetrievedChunk:
    id: str
    content: str
    source: str
    score: float
    metadata: ChunkMetadata | None = None


@dataclass(frozen=True)
class SignalVector:
    semantic: float
    lexical: float
    temporal: float
    entity: float
    context: float
    quality: float
    diversity: float

    @classmethod
    def neutral(cls) -> SignalVector:
        return cls(0.5, 0.5, 0.5, 0.5, 0.5, 0.5, 0.5)

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class RerankWeights:
    semantic: float
    lexical: float
    temporal: float
    entity: float
    context: float
    quality: float
    diversity: float = 0.0

    def normalized(self) -> RerankWeights:
        """Clamp negatives to zero and rescale so the weights sum to 1."""
        values = {f.name: max(0.0, getattr(self, f.name)) for f in fields(self)}
        total = sum(values.values())
        if total <= 0:
            raise ValueError("rerank weights must have a positive sum")
        return RerankWeights(**{name: v / total for name, v in values.items()})

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class RerankedChunk:
    chunk: RetrievedChunk
    signals: SignalVector
    rerank_score: float
    final_score: float

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def source(self) -> str:
        return self.chunk.source

    @property
    def original_score(self) -> float:
        return self.chunk.score


@dataclass
class AnswerabilityResult:
    can_answer: bool
    confidence: float
    reasoning: str
    reason_code: str | None = None
    evidence: float = 0.0
    coverage: float = 0.0
    coherence: float = 0.0
    missing_info: list[str] = field(default_factory=list)
    suggested_queries: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProposedCitation:
    text: str
    source_id: str
    confidence: float = 0.8


@dataclass
class GenerationContext:
    query: str
    chunks: list[RerankedChunk]
    intent: IntentAnalysis
    answerability: AnswerabilityResult
    user_id: str


@dataclass
class GenerationOutput:
    text: str
    citations: list[ProposedCitation]
    tokens_used: int
    cost: float
    confidence: float
    model: str
    reasoning: list[str] = field(default_factory=list)
    strategy: str = "default"


@dataclass(frozen=True)
class Alternative:
    description: str
    cost: float
    quality: float


@dataclass(frozen=True)
class CostDecision:
    allowed: bool
    reason: str
    suggested_action: DegradationAction
    estimated_cost: float
    priority: Priority
    alternatives: tuple[Alternative, ...] = ()
    backoff_delay: float | None = None
    batch_id: str | None = None
    cache_hit: bool = False
    reason_code: str | None = None


@dataclass(frozen=True)
class RequestEntry:
    timestamp: float
    operation: str
    cost: float
    tokens: int
    priority: Priority
    user_id: str | None = None


@dataclass(frozen=True)
class BatchItem:
    id: str
    operation: str
    tokens: int
    cost: float
    priority: Priority
    enqueued_at: float
    user_id: str | None = None


@dataclass(frozen=True)
class CacheEntry:
    decision: CostDecision
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(frozen=True)
class BreakerSnapshot:
    state: BreakerState
    failure_count: int
    last_failure: float | None = None


@dataclass(frozen=True)
class UsageMetrics:
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
    circuit_breaker: BreakerSnapshot
