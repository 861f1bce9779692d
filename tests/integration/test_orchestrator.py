"""End-to-end tests of the query pipeline over the reference corpus and fakes."""

import pytest

from conftest import FailingGenerator, FakeIndex, StaticGenerator, make_chunk, proposed

from rag_core.cost.controller import AdmissionController
from rag_core.generation.extractive import MODEL_TAG, ExtractiveGenerator
from rag_core.generation.synthesizer import AnswerSynthesizer
from rag_core.models.schemas import QueryOptions, QueryRequest, UserPreferences
from rag_core.pipeline.factory import build_services
from rag_core.pipeline.orchestrator import RAGOrchestrator
from rag_core.retrieval.hybrid_retriever import HybridRetriever
from rag_core.retrieval.reranker import AdaptiveReranker

PARIS_QUERY = "Quelle est la capitale de la France ?"
FRENCH = UserPreferences(language="fr")
ENGLISH = UserPreferences(language="en")


class RecordingSink:
    def __init__(self, error: Exception | None = None) -> None:
        self.records = []
        self.error = error

    async def log_metrics(self, record) -> None:
        if self.error is not None:
            raise self.error
        self.records.append(record)


def fake_pipeline(settings, index, generator=None, sink=None):
    controller = AdmissionController(settings)
    return RAGOrchestrator(
        settings=settings,
        controller=controller,
        retriever=HybridRetriever(index, timeout_s=settings.retrieval_timeout_s),
        reranker=AdaptiveReranker(),
        synthesizer=AnswerSynthesizer(generator or ExtractiveGenerator()),
        metrics_sink=sink or RecordingSink(),
    )


class TestAnsweredPath:
    async def test_reference_corpus_answer_is_cited(self, settings):
        services = build_services(settings, generator=ExtractiveGenerator())
        response = await services.orchestrator.query(QueryRequest(query=PARIS_QUERY))

        assert response.status == "answered"
        assert "Paris" in response.answer
        assert "geo_france" in {c.source_id for c in response.citations}
        assert 0.0 < response.confidence <= settings.conf_max
        assert response.answerability >= settings.answerability_threshold
        assert response.metadata.model == MODEL_TAG
        assert response.metadata.retrieval_stats.total_candidates >= 1
        assert {"intent", "admission", "retrieval", "rerank", "synthesis"} <= set(
            response.metadata.stage_latency_ms
        )
        assert response.reasoning is not None
        assert response.reasoning.intent["language"] == "fr"

    async def test_every_citation_points_at_a_returned_source(self, settings):
        services = build_services(settings, generator=ExtractiveGenerator())
        response = await services.orchestrator.query(QueryRequest(query=PARIS_QUERY))
        source_ids = {s.id for s in response.sources}
        assert response.citations
        assert all(c.source_id in source_ids for c in response.citations)

    async def test_dangling_citation_is_dropped(self, settings):
        generator = StaticGenerator(
            "Paris est la capitale de la France [1].",
            citations=[
                proposed("Paris est la capitale de la France.", "geo_france", 0.9),
                proposed("Marseille est la capitale.", "unknown_doc", 0.9),
            ],
        )
        services = build_services(settings, generator=generator)
        response = await services.orchestrator.query(QueryRequest(query=PARIS_QUERY))
        assert response.status == "answered"
        assert [c.source_id for c in response.citations] == ["geo_france"]
        assert "DANGLING_CITATION" in response.reasons

    async def test_local_only_bypasses_remote_generator(self, settings):
        remote = StaticGenerator("remote answer [1]", cost=0.02)
        services = build_services(settings, generator=remote)
        response = await services.orchestrator.query(
            QueryRequest(query=PARIS_QUERY, options=QueryOptions(use_local_only=True))
        )
        assert response.status == "answered"
        assert response.metadata.model == MODEL_TAG
        assert response.metadata.cost == 0.0
        assert remote.contexts == []

    async def test_request_is_logged_to_sink(self, settings):
        sink = RecordingSink()
        services = build_services(settings, generator=ExtractiveGenerator(), metrics_sink=sink)
        await services.orchestrator.query(QueryRequest(query=PARIS_QUERY, user_id="u42"))
        assert len(sink.records) == 1
        record = sink.records[0]
        assert record.user_id == "u42"
        assert record.status == "answered"
        assert len(record.request_fingerprint) == 16

    async def test_sink_failure_does_not_fail_the_query(self, settings):
        services = build_services(
            settings,
            generator=ExtractiveGenerator(),
            metrics_sink=RecordingSink(error=RuntimeError("disk full")),
        )
        response = await services.orchestrator.query(QueryRequest(query=PARIS_QUERY))
        assert response.status == "answered"


class TestTerminalPaths:
    @pytest.mark.parametrize("query", ["", "   ", "x" * 2001])
    async def test_invalid_query(self, settings, query):
        index = FakeIndex()
        response = await fake_pipeline(settings, index).query(QueryRequest(query=query))
        assert response.status == "validation_error"
        assert response.reasons == ["VALIDATION_FAILED"]
        assert response.confidence == 0.0
        assert index.calls == 0

    async def test_no_results(self, settings):
        response = await fake_pipeline(settings, FakeIndex()).query(
            QueryRequest(query=PARIS_QUERY, preferences=FRENCH)
        )
        assert response.status == "no_results"
        assert response.answer.startswith("Je n'ai pas trouvé")
        assert response.citations == []
        assert response.sources == []

    async def test_terminal_message_follows_language(self, settings):
        response = await fake_pipeline(settings, FakeIndex()).query(
            QueryRequest(query="What is the capital of France?", preferences=ENGLISH)
        )
        assert response.status == "no_results"
        assert response.answer == "I could not find relevant information to answer your question."

    async def test_low_scoring_candidates_are_filtered_out(self, settings, paris_chunk):
        weak = make_chunk("weak", paris_chunk.content, score=0.2)
        response = await fake_pipeline(settings, FakeIndex([weak])).query(
            QueryRequest(query=PARIS_QUERY)
        )
        assert response.status == "no_results"

    async def test_trap_query_is_declined(self, settings):
        services = build_services(settings, generator=ExtractiveGenerator())
        response = await services.orchestrator.query(
            QueryRequest(query="Quel est le nom du chien de mon voisin?")
        )
        assert response.status in {"no_results", "unanswerable"}
        assert response.confidence == 0.0

    async def test_retrieval_failure_falls_back(self, settings):
        pipeline = fake_pipeline(settings, FakeIndex(error=RuntimeError("index down")))
        response = await pipeline.query(QueryRequest(query=PARIS_QUERY))
        assert response.status == "fallback"
        assert "RETRIEVAL_FAILED" in response.reasons
        assert pipeline.controller.breaker.snapshot().failure_count == 1

    async def test_generation_failure_falls_back(self, settings):
        generator = FailingGenerator()
        services = build_services(settings, generator=generator)
        response = await services.orchestrator.query(QueryRequest(query=PARIS_QUERY))
        assert response.status == "fallback"
        assert "GENERATION_FAILED" in response.reasons
        assert response.citations == []
        assert generator.calls == 1

    async def test_budget_exhausted_blocks(self, settings):
        broke = settings.model_copy(update={"daily_budget_usd": 0.0})
        index = FakeIndex()
        response = await fake_pipeline(broke, index).query(QueryRequest(query=PARIS_QUERY))
        assert response.status == "cost_blocked"
        assert response.reasons == ["COST_BLOCKED", "BUDGET_QUOTA_EXCEEDED"]
        assert response.metadata.model == "cost-enforcer"
        assert index.calls == 0

    async def test_repeated_index_failures_open_the_breaker(self, settings):
        pipeline = fake_pipeline(settings, FakeIndex(error=RuntimeError("index down")))
        for _ in range(settings.circuit_breaker_threshold):
            response = await pipeline.query(QueryRequest(query=PARIS_QUERY))
            assert response.status == "fallback"

        blocked = await pipeline.query(QueryRequest(query=PARIS_QUERY))
        assert blocked.status == "cost_blocked"
        assert "CIRCUIT_OPEN" in blocked.reasons

    async def test_generation_outage_opens_the_breaker(self, settings, paris_chunk):
        generator = FailingGenerator()
        pipeline = fake_pipeline(settings, FakeIndex([paris_chunk]), generator)
        for _ in range(settings.circuit_breaker_threshold):
            response = await pipeline.query(QueryRequest(query=PARIS_QUERY))
            assert response.status == "fallback"
            assert "GENERATION_FAILED" in response.reasons

        assert pipeline.controller.breaker.snapshot().state == "open"
        blocked = await pipeline.query(QueryRequest(query=PARIS_QUERY))
        assert blocked.status == "cost_blocked"
        assert "CIRCUIT_OPEN" in blocked.reasons
        assert generator.calls == settings.circuit_breaker_threshold

    async def test_successful_query_resets_failure_count(self, settings, paris_chunk):
        pipeline = fake_pipeline(settings, FakeIndex([paris_chunk]), FailingGenerator())
        await pipeline.query(QueryRequest(query=PARIS_QUERY))
        assert pipeline.controller.breaker.snapshot().failure_count == 1

        pipeline._synthesizer = AnswerSynthesizer(ExtractiveGenerator())
        response = await pipeline.query(QueryRequest(query=PARIS_QUERY))
        assert response.status != "fallback"
        assert pipeline.controller.breaker.snapshot().failure_count == 0

    async def test_deadline_aborts_slow_retrieval(self, settings, paris_chunk):
        pipeline = fake_pipeline(settings, FakeIndex([paris_chunk], delay_s=0.5))
        response = await pipeline.query(QueryRequest(query=PARIS_QUERY, deadline_ms=20))
        assert response.status == "deadline_exceeded"
        assert "DEADLINE_EXCEEDED" in response.reasons
        assert response.citations == []
        assert pipeline.controller.breaker.snapshot().failure_count == 0
