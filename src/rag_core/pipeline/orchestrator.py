"""Query orchestrator: admission, retrieval, reranking, gating, synthesis, validation.

Every stage may end the request with a typed terminal response. ``query``
never raises; collaborator failures become ``fallback`` responses and feed
the admission controller's circuit breaker.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rag_core.config.settings import Settings
from rag_core.cost.controller import AdmissionController, estimate_cost, estimate_tokens
from rag_core.exceptions import (
    DeadlineExceeded,
    GenerationError,
    QueryValidationError,
    RetrievalError,
)
from rag_core.generation.synthesizer import AnswerSynthesizer
from rag_core.models.domain import (
    AnswerabilityResult,
    CostDecision,
    GenerationOutput,
    IntentAnalysis,
    Priority,
    RerankedChunk,
    RetrievalPlan,
    RetrievedChunk,
    UsageMetrics,
)
from rag_core.models.schemas import (
    QueryRequest,
    RAGResponse,
    ReasoningStep,
    ReasoningTrace,
    ResponseMetadata,
    ResponseStatus,
    RetrievalStats,
    Source,
)
from rag_core.observability.logger import get_logger
from rag_core.observability.metrics import (
    LoggingMetricsSink,
    MetricsRecord,
    MetricsSink,
    log_answerability_metrics,
    log_generation_metrics,
    log_rerank_metrics,
    log_retrieval_metrics,
    request_fingerprint,
)
from rag_core.observability.tracing import TraceContext
from rag_core.query.intent import IntentAnalyzer, detect_language, normalize
from rag_core.retrieval.hybrid_retriever import HybridRetriever
from rag_core.retrieval.planner import RetrievalPlanner
from rag_core.retrieval.reranker import AdaptiveReranker
from rag_core.scoring.answerability import AnswerabilityGate
from rag_core.scoring.confidence import ConfidenceScorer
from rag_core.scoring.reason_codes import ReasonCode
from rag_core.verification.citations import CitationValidator

logger = get_logger("orchestrator")

OPERATION = "rag_query"
HIGH_COMPLEXITY = 0.7
SOURCE_PREVIEW_CHARS = 200

MESSAGES = {
    "fr": {
        "validation_error": "La question est vide ou dépasse la longueur autorisée.",
        "cost_blocked": "Limite de coût atteinte. Raison: {reason}",
        "no_results": "Je n'ai pas trouvé d'informations pertinentes pour répondre à votre question.",
        "unanswerable": (
            "Je ne peux pas répondre avec certitude à cette question basé sur les "
            "informations disponibles. {reason}"
        ),
        "fallback": "Une erreur est survenue lors du traitement de votre question. Veuillez réessayer.",
        "deadline_exceeded": "Le délai de traitement de votre question a été dépassé.",
    },
    "en": {
        "validation_error": "The question is empty or exceeds the allowed length.",
        "cost_blocked": "Cost limit reached. Reason: {reason}",
        "no_results": "I could not find relevant information to answer your question.",
        "unanswerable": (
            "I cannot answer this question with confidence based on the available "
            "information. {reason}"
        ),
        "fallback": "An error occurred while processing your question. Please try again.",
        "deadline_exceeded": "The processing deadline for your question was exceeded.",
    },
}

TERMINAL_MODELS: dict[str, str] = {
    "validation_error": "validation",
    "cost_blocked": "cost-enforcer",
    "no_results": "none",
    "unanswerable": "answerability-gate",
    "fallback": "fallback",
    "deadline_exceeded": "deadline",
}


@dataclass
class _QueryRun:
    """Per-request working state; never shared between requests."""

    request: QueryRequest
    trace: TraceContext
    language: str = "en"
    query: str = ""
    intent: IntentAnalysis | None = None
    decision: CostDecision | None = None
    plan: RetrievalPlan | None = None
    candidates: list[RetrievedChunk] = field(default_factory=list)
    reranked: list[RerankedChunk] = field(default_factory=list)
    answerability: AnswerabilityResult | None = None
    reasons: list[str] = field(default_factory=list)
    steps: list[ReasoningStep] = field(default_factory=list)
    # Outcome of the last collaborator stage reached; fed to the breaker once per query.
    collaborators_ok: bool | None = None


class RAGOrchestrator:
    def __init__(
        self,
        settings: Settings,
        controller: AdmissionController,
        retriever: HybridRetriever,
        reranker: AdaptiveReranker,
        synthesizer: AnswerSynthesizer,
        intent_analyzer: IntentAnalyzer | None = None,
        planner: RetrievalPlanner | None = None,
        answerability_gate: AnswerabilityGate | None = None,
        citation_validator: CitationValidator | None = None,
        confidence_scorer: ConfidenceScorer | None = None,
        local_synthesizer: AnswerSynthesizer | None = None,
        metrics_sink: MetricsSink | None = None,
    ) -> None:
        self._settings = settings
        self._controller = controller
        self._retriever = retriever
        self._reranker = reranker
        self._synthesizer = synthesizer
        self._local_synthesizer = local_synthesizer
        self._intent = intent_analyzer or IntentAnalyzer()
        self._planner = planner or RetrievalPlanner(settings.default_min_score)
        self._gate = answerability_gate or AnswerabilityGate(settings)
        self._validator = citation_validator or CitationValidator()
        self._confidence = confidence_scorer or ConfidenceScorer(settings)
        self._sink = metrics_sink or LoggingMetricsSink()

    @property
    def controller(self) -> AdmissionController:
        return self._controller

    async def get_metrics(self) -> UsageMetrics:
        return await self._controller.get_metrics()

    async def query(self, request: QueryRequest) -> RAGResponse:
        run = _QueryRun(request=request, trace=TraceContext(deadline_ms=request.deadline_ms))
        try:
            response = await self._execute(run)
        except DeadlineExceeded as e:
            response = self._deadline_response(run, str(e))
        except Exception as e:
            logger.error(
                "query_failed",
                request_id=run.trace.trace_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            run.reasons.append(ReasonCode.INTERNAL_ERROR)
            response = self._terminal(run, "fallback")

        if run.collaborators_ok is not None:
            await self._controller.report_outcome(run.collaborators_ok)
        await self._record(run, response)
        return response

    async def _execute(self, run: _QueryRun) -> RAGResponse:
        request = run.request
        preferred = request.preferences.language if request.preferences else None

        try:
            run.query = self._validate(request.query)
        except QueryValidationError as e:
            run.language = preferred or (detect_language(request.query) if request.query.strip() else "en")
            run.reasons.append(ReasonCode.VALIDATION_FAILED)
            logger.info("query_rejected", request_id=run.trace.trace_id, error=str(e))
            return self._terminal(run, "validation_error")

        # Intent
        with run.trace.span("intent"):
            run.intent = self._intent.analyze(
                run.query, conversation=request.conversation, preferred_language=preferred
            )
        run.language = run.intent.language
        run.steps.append(
            ReasoningStep(
                step="intent",
                reasoning=f"type={run.intent.type} complexity={run.intent.complexity:.2f}",
                confidence=1.0,
            )
        )

        # Admission
        with run.trace.span("admission"):
            tokens = estimate_tokens(run.query)
            run.decision = await self._controller.should_proceed(
                OPERATION,
                tokens,
                estimate_cost(run.intent.complexity, tokens),
                self._priority(request, run.intent),
                request.user_id,
            )
        if not run.decision.allowed:
            run.reasons.append(ReasonCode.COST_BLOCKED)
            if run.decision.reason_code:
                run.reasons.append(run.decision.reason_code)
            return self._terminal(run, "cost_blocked", reason=run.decision.reason)
        self._check_deadline(run)

        # Plan + retrieve
        run.plan = self._planner.plan(run.intent, request.options, request.filters)
        with run.trace.span("retrieval"):
            try:
                run.candidates = await self._retriever.retrieve(
                    run.query,
                    run.plan,
                    timeout_s=run.trace.remaining_s(self._settings.retrieval_timeout_s),
                )
            except RetrievalError as e:
                if run.trace.expired():
                    raise DeadlineExceeded("deadline passed during retrieval") from e
                run.collaborators_ok = False
                logger.error("retrieval_failed", request_id=run.trace.trace_id, error=str(e))
                run.reasons.append(ReasonCode.RETRIEVAL_FAILED)
                return self._terminal(run, "fallback")
        run.collaborators_ok = True

        log_retrieval_metrics(
            run.trace.trace_id,
            run.plan.strategy,
            run.plan.top_k,
            len(run.candidates),
            len({c.source for c in run.candidates}),
        )
        if not run.candidates:
            run.reasons.append(ReasonCode.NO_RESULTS)
            return self._terminal(run, "no_results")
        self._check_deadline(run)

        # Rerank
        with run.trace.span("rerank"):
            result = await self._reranker.rerank(
                run.query,
                run.candidates,
                run.intent,
                conversation=request.conversation,
                max_results=request.options.max_results or self._settings.rerank_max_results,
                enabled=request.options.enable_reranking,
            )
        run.reranked = result.chunks
        if result.degraded:
            run.reasons.append(ReasonCode.RERANK_FALLBACK)
        log_rerank_metrics(
            run.trace.trace_id,
            len(run.candidates),
            len(run.reranked),
            [c.final_score for c in run.reranked],
        )
        run.steps.append(
            ReasoningStep(
                step="retrieval",
                reasoning=(
                    f"strategy={run.plan.strategy} candidates={len(run.candidates)} "
                    f"kept={len(run.reranked)}"
                ),
                confidence=run.reranked[0].final_score if run.reranked else 0.0,
            )
        )
        self._check_deadline(run)

        # Answerability
        with run.trace.span("answerability"):
            run.answerability = self._gate.assess(run.query, run.reranked, run.language)
        answerability = run.answerability
        log_answerability_metrics(
            run.trace.trace_id,
            answerability.evidence,
            answerability.coverage,
            answerability.coherence,
            answerability.confidence,
            answerability.can_answer,
        )
        run.steps.append(
            ReasoningStep(
                step="answerability",
                reasoning=answerability.reasoning,
                confidence=answerability.confidence,
            )
        )
        if not answerability.can_answer:
            if answerability.reason_code:
                run.reasons.append(answerability.reason_code)
            return self._terminal(run, "unanswerable", reason=answerability.reasoning)
        self._check_deadline(run)

        # Synthesis
        evidence = run.reranked[: run.plan.top_k]
        synthesizer = self._synthesizer
        if request.options.use_local_only and self._local_synthesizer is not None:
            synthesizer = self._local_synthesizer
        with run.trace.span("synthesis"):
            try:
                output = await synthesizer.synthesize(
                    run.query,
                    evidence,
                    run.intent,
                    answerability,
                    user_id=request.user_id,
                    timeout_s=run.trace.remaining_s(self._settings.generation_timeout_s),
                )
            except GenerationError as e:
                if run.trace.expired():
                    raise DeadlineExceeded("deadline passed during synthesis") from e
                run.collaborators_ok = False
                logger.error("generation_failed", request_id=run.trace.trace_id, error=str(e))
                run.reasons.append(ReasonCode.GENERATION_FAILED)
                return self._terminal(run, "fallback")
        run.collaborators_ok = True
        self._check_deadline(run)

        return self._assemble(run, evidence, output)

    def _assemble(
        self,
        run: _QueryRun,
        evidence: list[RerankedChunk],
        output: GenerationOutput,
    ) -> RAGResponse:
        with run.trace.span("citations"):
            report = self._validator.validate(output.citations, evidence)
        if report.dangling:
            run.reasons.append(ReasonCode.DANGLING_CITATION)
        if report.dropped or report.downweighted:
            run.reasons.append(ReasonCode.CITATIONS_DROPPED)

        confidence = self._confidence.score(
            [c.confidence for c in report.valid],
            output.confidence,
            run.answerability.confidence,
            dropped_citations=report.failures,
        )
        log_generation_metrics(
            run.trace.trace_id,
            output.model,
            output.tokens_used,
            output.cost,
            len(output.citations),
            len(report.valid),
            confidence,
        )
        run.steps.append(
            ReasoningStep(
                step="synthesis",
                reasoning="; ".join(output.reasoning) or output.strategy,
                confidence=output.confidence,
            )
        )

        return RAGResponse(
            answer=output.text,
            citations=report.valid,
            confidence=round(confidence, 4),
            answerability=round(run.answerability.confidence, 4),
            sources=[_source(c) for c in evidence],
            metadata=self._metadata(run, model=output.model, tokens=output.tokens_used, cost=output.cost),
            status="answered",
            reasons=[str(r) for r in run.reasons],
            reasoning=self._reasoning(run, output.strategy),
        )

    def _terminal(self, run: _QueryRun, status: ResponseStatus, reason: str = "") -> RAGResponse:
        messages = MESSAGES.get(run.language, MESSAGES["en"])
        answerability = run.answerability.confidence if run.answerability else 0.0
        return RAGResponse(
            answer=messages[status].format(reason=reason).strip(),
            citations=[],
            confidence=0.0,
            answerability=round(max(0.0, min(1.0, answerability)), 4),
            sources=[],
            metadata=self._metadata(run, model=TERMINAL_MODELS[status]),
            status=status,
            reasons=[str(r) for r in run.reasons],
            reasoning=self._reasoning(run, status) if run.intent else None,
        )

    def _check_deadline(self, run: _QueryRun) -> None:
        if run.trace.deadline_passed:
            raise DeadlineExceeded(f"deadline of {run.request.deadline_ms} ms passed")

    def _deadline_response(self, run: _QueryRun, detail: str) -> RAGResponse:
        logger.warning(
            "deadline_exceeded",
            request_id=run.trace.trace_id,
            detail=detail,
            elapsed_ms=round(run.trace.elapsed_ms, 2),
        )
        run.reasons.append(ReasonCode.DEADLINE_EXCEEDED)
        return self._terminal(run, "deadline_exceeded")

    def _metadata(
        self,
        run: _QueryRun,
        model: str,
        tokens: int = 0,
        cost: float = 0.0,
    ) -> ResponseMetadata:
        return ResponseMetadata(
            request_id=run.trace.trace_id,
            latency_ms=round(run.trace.elapsed_ms, 2),
            model=model,
            tokens_used=tokens,
            cost=cost,
            retrieval_stats=RetrievalStats(
                total_candidates=len(run.candidates),
                after_rerank=len(run.reranked),
                strategy=run.plan.strategy if run.plan else "none",
            ),
            stage_latency_ms=run.trace.stage_latencies(),
        )

    @staticmethod
    def _reasoning(run: _QueryRun, strategy: str) -> ReasoningTrace:
        intent = run.intent
        plan = run.plan
        return ReasoningTrace(
            steps=list(run.steps),
            intent={
                "type": intent.type,
                "complexity": intent.complexity,
                "entities": list(intent.entities),
                "scope": list(intent.scope),
                "expected_answer_type": intent.expected_answer_type,
                "language": intent.language,
            }
            if intent
            else {},
            plan={
                "strategy": plan.strategy,
                "top_k": plan.top_k,
                "rerank_count": plan.rerank_count,
                "min_score": plan.filters.min_score,
            }
            if plan
            else {},
            synthesis_strategy=strategy,
        )

    def _validate(self, query: str) -> str:
        normalized = normalize(query)
        if not normalized:
            raise QueryValidationError("query is empty")
        if len(normalized) > self._settings.max_query_length:
            raise QueryValidationError(
                f"query length {len(normalized)} exceeds {self._settings.max_query_length}"
            )
        return normalized

    @staticmethod
    def _priority(request: QueryRequest, intent: IntentAnalysis) -> Priority:
        if request.priority is not None:
            return request.priority
        return "high" if intent.complexity > HIGH_COMPLEXITY else "medium"

    async def _record(self, run: _QueryRun, response: RAGResponse) -> None:
        logger.info(
            "query_completed",
            request_id=response.metadata.request_id,
            user_id=run.request.user_id,
            status=response.status,
            model=response.metadata.model,
            latency_ms=response.metadata.latency_ms,
            confidence=response.confidence,
            answerability=response.answerability,
            citations=len(response.citations),
            cost=response.metadata.cost,
            reasons=response.reasons,
        )
        record = MetricsRecord(
            user_id=run.request.user_id,
            operation=OPERATION,
            model=response.metadata.model,
            request_tokens=estimate_tokens(run.request.query),
            response_tokens=response.metadata.tokens_used or estimate_tokens(response.answer),
            cost_usd=response.metadata.cost,
            latency_ms=response.metadata.latency_ms,
            confidence=response.confidence,
            answerability=response.answerability,
            citation_count=len(response.citations),
            cache_hit=bool(run.decision and run.decision.cache_hit),
            request_fingerprint=request_fingerprint(run.request.query),
            status=response.status,
        )
        try:
            await self._sink.log_metrics(record)
        except Exception as e:
            logger.warning("metrics_sink_failed", fingerprint=record.request_fingerprint, error=str(e))


def _source(chunk: RerankedChunk) -> Source:
    metadata = chunk.chunk.metadata
    return Source(
        id=chunk.id,
        title=(metadata.title if metadata and metadata.title else chunk.source),
        content=chunk.content[:SOURCE_PREVIEW_CHARS],
        url=None,
    )
