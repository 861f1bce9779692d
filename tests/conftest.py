"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from rag_core.config.settings import Settings
from rag_core.cost.controller import AdmissionController
from rag_core.models.domain import (
    ChunkMetadata,
    GenerationContext,
    GenerationOutput,
    IntentAnalysis,
    ProposedCitation,
    RerankedChunk,
    RetrievalPlan,
    RetrievedChunk,
    SignalVector,
)

# 2024-01-15 09:00 UTC, far from any day or month boundary.
START = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    def __init__(self, start: float = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIndex:
    """ContentIndex returning a fixed candidate list."""

    def __init__(self, chunks=None, error: Exception | None = None, delay_s: float = 0.0) -> None:
        self.chunks = list(chunks or [])
        self.error = error
        self.delay_s = delay_s
        self.calls = 0

    @property
    def size(self) -> int:
        return len(self.chunks)

    async def search(self, query: str, plan: RetrievalPlan) -> list[RetrievedChunk]:
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.chunks)


class StaticGenerator:
    """TextGenerator returning a canned answer."""

    def __init__(self, text: str, citations=None, confidence: float = 0.8, cost: float = 0.0) -> None:
        self.text = text
        self.citations = list(citations or [])
        self.confidence = confidence
        self.cost = cost
        self.contexts: list[GenerationContext] = []

    async def generate(self, context: GenerationContext) -> GenerationOutput:
        self.contexts.append(context)
        return GenerationOutput(
            text=self.text,
            citations=self.citations,
            tokens_used=42,
            cost=self.cost,
            confidence=self.confidence,
            model="static",
        )


class FailingGenerator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("backend unavailable")
        self.calls = 0

    async def generate(self, context: GenerationContext) -> GenerationOutput:
        self.calls += 1
        raise self.error


def make_chunk(
    chunk_id: str,
    content: str,
    score: float = 0.9,
    source: str = "docs",
    **meta,
) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk_id,
        content=content,
        source=source,
        score=score,
        metadata=ChunkMetadata(**meta) if meta else None,
    )


def make_reranked(chunk: RetrievedChunk, final_score: float = 0.8) -> RerankedChunk:
    return RerankedChunk(
        chunk=chunk,
        signals=SignalVector.neutral(),
        rerank_score=final_score,
        final_score=final_score,
    )


def make_intent(**overrides) -> IntentAnalysis:
    values = dict(
        type="factual",
        complexity=0.0,
        scope=("general",),
        entities=(),
        expected_answer_type="short",
        language="fr",
    )
    values.update(overrides)
    return IntentAnalysis(**values)


def proposed(text: str, source_id: str, confidence: float = 0.8) -> ProposedCitation:
    return ProposedCitation(text=text, source_id=source_id, confidence=confidence)


@pytest.fixture
def settings():
    """Test settings without API keys and with background work disabled."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        google_api_key="",
        metrics_db_path="",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def controller(settings, clock):
    return AdmissionController(settings, clock=clock)


@pytest.fixture
def paris_chunk():
    return make_chunk(
        "geo_france",
        "Paris est la capitale de la France. La ville est située sur la Seine.",
        score=0.9,
        source="atlas",
        title="La France",
    )
