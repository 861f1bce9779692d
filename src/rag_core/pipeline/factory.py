"""Wires the query pipeline, admission controller and evaluation harness from Settings."""

from __future__ import annotations

from dataclasses import dataclass

from rag_core.config.settings import Settings
from rag_core.cost.controller import AdmissionController
from rag_core.cost.maintenance import MaintenanceScheduler
from rag_core.embeddings.openai_embedder import OpenAIEmbedder
from rag_core.evaluation.corpus import REFERENCE_CORPUS, corpus_texts
from rag_core.evaluation.runner import EvaluationHarness
from rag_core.exceptions import ConfigurationError
from rag_core.generation.extractive import ExtractiveGenerator
from rag_core.generation.gemini_provider import GeminiGenerator
from rag_core.generation.synthesizer import AnswerSynthesizer
from rag_core.observability.logger import get_logger
from rag_core.observability.metrics import MetricsSink
from rag_core.pipeline.orchestrator import RAGOrchestrator
from rag_core.protocols.embedder import Encoder
from rag_core.protocols.llm import TextGenerator
from rag_core.retrieval.hybrid_retriever import HybridRetriever
from rag_core.retrieval.memory_index import InMemoryIndex
from rag_core.retrieval.reranker import AdaptiveReranker, RerankConfig
from rag_core.signals.embedding import HashedEmbedder

logger = get_logger("factory")


@dataclass
class Services:
    settings: Settings
    controller: AdmissionController
    scheduler: MaintenanceScheduler
    index: InMemoryIndex
    orchestrator: RAGOrchestrator
    harness: EvaluationHarness


def build_encoder(settings: Settings) -> Encoder:
    if settings.embedding_backend == "hashed":
        return HashedEmbedder(settings.hashed_embedding_dim)
    if settings.embedding_backend == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("RAG_OPENAI_API_KEY is required for the openai embedding backend")
        return OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            batch_size=settings.embedding_batch_size,
            dimensions=settings.embedding_dimensions,
        )
    raise ConfigurationError(f"unknown embedding backend: {settings.embedding_backend}")


def build_generator(settings: Settings) -> TextGenerator:
    if settings.google_api_key:
        return GeminiGenerator(
            api_key=settings.google_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_tokens=settings.gemini_max_tokens,
            cost_per_1k_tokens=settings.gemini_cost_per_1k_tokens,
        )
    return ExtractiveGenerator()


def build_services(
    settings: Settings,
    generator: TextGenerator | None = None,
    metrics_sink: MetricsSink | None = None,
    seed_corpus: bool = True,
) -> Services:
    controller = AdmissionController(settings)
    scheduler = MaintenanceScheduler.from_settings(controller.state, settings)

    index = InMemoryIndex(HashedEmbedder(settings.hashed_embedding_dim), rrf_k=settings.rrf_k)
    if seed_corpus:
        index.add(REFERENCE_CORPUS)

    reranker = AdaptiveReranker(
        encoder=build_encoder(settings),
        config=RerankConfig(
            weights=settings.rerank_weights(),
            diversity_factor=settings.rerank_diversity_factor,
            quality_threshold=settings.rerank_quality_threshold,
            max_results=settings.rerank_max_results,
            bm25_k1=settings.bm25_k1,
            bm25_b=settings.bm25_b,
            bm25_avg_doc_len=settings.bm25_avg_doc_len,
            bm25_idf=settings.bm25_idf,
        ),
    )
    generator = generator or build_generator(settings)
    orchestrator = RAGOrchestrator(
        settings=settings,
        controller=controller,
        retriever=HybridRetriever(index, timeout_s=settings.retrieval_timeout_s),
        reranker=reranker,
        synthesizer=AnswerSynthesizer(generator, timeout_s=settings.generation_timeout_s),
        local_synthesizer=AnswerSynthesizer(
            ExtractiveGenerator(), timeout_s=settings.generation_timeout_s
        ),
        metrics_sink=metrics_sink,
    )
    harness = EvaluationHarness(
        orchestrator,
        corpus_texts(),
        concurrency=settings.eval_concurrency,
        retry_attempts=settings.retry_attempts,
        backoff_base_s=settings.retry_backoff_base_s,
        backoff_max_s=settings.retry_backoff_max_s,
    )
    logger.info(
        "services_built",
        indexed_chunks=index.size,
        generator=type(generator).__name__,
        embedding_backend=settings.embedding_backend,
    )
    return Services(
        settings=settings,
        controller=controller,
        scheduler=scheduler,
        index=index,
        orchestrator=orchestrator,
        harness=harness,
    )
