"""Tests for the generation backends and the synthesizer."""

import asyncio
from types import SimpleNamespace

import pytest

from conftest import FailingGenerator, StaticGenerator, make_chunk, make_intent, make_reranked

from rag_core.exceptions import GenerationError
from rag_core.generation.extractive import MODEL_TAG, ExtractiveGenerator, split_sentences
from rag_core.generation.gemini_provider import GeminiGenerator, citations_from_markers
from rag_core.generation.prompt_templates import format_evidence_block
from rag_core.generation.synthesizer import AnswerSynthesizer
from rag_core.models.domain import AnswerabilityResult, GenerationContext

TOKYO = make_chunk("geo_japan", "Tokyo est la capitale du Japon. La ville est très peuplée.")
EGG = make_chunk("egg", "Plongez l'œuf dans l'eau bouillante. Attendez trois minutes.")


def context(query, chunks, language="fr"):
    return GenerationContext(
        query=query,
        chunks=[make_reranked(c) for c in chunks],
        intent=make_intent(language=language),
        answerability=AnswerabilityResult(can_answer=True, confidence=0.8, reasoning="ok"),
        user_id="u1",
    )


def test_split_sentences():
    assert split_sentences("Un. Deux! Trois? ") == ["Un.", "Deux!", "Trois?"]
    assert split_sentences("") == []


async def test_extractive_answer_quotes_and_cites_best_sentence(paris_chunk):
    output = await ExtractiveGenerator(max_sentences=1).generate(
        context("Quelle est la capitale de la France?", [paris_chunk, TOKYO])
    )
    assert output.text == "Paris est la capitale de la France. [1]"
    assert output.citations[0].text == "Paris est la capitale de la France."
    assert output.citations[0].source_id == "geo_france"
    assert output.citations[0].confidence == pytest.approx(0.875)
    assert output.confidence == pytest.approx(0.75)
    assert output.cost == 0.0
    assert output.model == MODEL_TAG
    assert output.strategy == "extractive"


async def test_extractive_falls_back_to_first_sentence_of_top_chunk():
    output = await ExtractiveGenerator().generate(context("xyz inconnu", [EGG]))
    assert output.text == "Plongez l'œuf dans l'eau bouillante. [1]"
    assert output.confidence == 0.3


async def test_extractive_cites_chunk_positions():
    output = await ExtractiveGenerator(max_sentences=2).generate(
        context("capitale Japon Tokyo", [EGG, TOKYO])
    )
    assert output.text.startswith("Tokyo est la capitale du Japon. [2]")
    assert {c.source_id for c in output.citations} == {"geo_japan"}


def test_citations_from_markers(paris_chunk):
    chunks = [make_reranked(paris_chunk), make_reranked(TOKYO)]
    answer = "Paris est la capitale de la France [1]. Tokyo est celle du Japon [2]. Hors sujet [5]."
    citations = citations_from_markers(answer, chunks)
    assert [(c.source_id, c.text) for c in citations] == [
        ("geo_france", "Paris est la capitale de la France."),
        ("geo_japan", "Tokyo est la capitale du Japon."),
    ]
    assert all(0.5 <= c.confidence <= 0.95 for c in citations)


def test_format_evidence_block(paris_chunk):
    block = format_evidence_block([make_reranked(paris_chunk), make_reranked(TOKYO)])
    assert block.startswith("[1] Paris est la capitale")
    assert "\n\n[2] Tokyo" in block


def fake_gemini(response=None, error=None):
    calls = []

    async def generate_content(model, contents, config):
        calls.append((model, contents, config))
        if error is not None:
            raise error
        return response

    generator = GeminiGenerator(api_key="test-key", model="gemini-test", cost_per_1k_tokens=0.5)
    generator._client = SimpleNamespace(
        aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    )
    return generator, calls


async def test_gemini_generator_maps_markers_and_usage(paris_chunk):
    response = SimpleNamespace(
        text="Paris est la capitale de la France [1].",
        usage_metadata=SimpleNamespace(total_token_count=200),
    )
    generator, calls = fake_gemini(response)
    output = await generator.generate(context("Quelle est la capitale de la France?", [paris_chunk]))
    assert output.text == "Paris est la capitale de la France [1]."
    assert output.citations[0].source_id == "geo_france"
    assert output.tokens_used == 200
    assert output.cost == pytest.approx(0.1)
    assert output.model == "gemini-test"
    assert "[1] Paris est la capitale" in calls[0][1]


async def test_gemini_generator_wraps_errors(paris_chunk):
    generator, _ = fake_gemini(error=RuntimeError("quota"))
    with pytest.raises(GenerationError, match="quota"):
        await generator.generate(context("Quelle est la capitale?", [paris_chunk]))


async def test_synthesizer_delegates(paris_chunk):
    generator = StaticGenerator("Paris [1]")
    output = await AnswerSynthesizer(generator).synthesize(
        "Quelle est la capitale?",
        [make_reranked(paris_chunk)],
        make_intent(),
        AnswerabilityResult(can_answer=True, confidence=0.8, reasoning="ok"),
        user_id="u1",
    )
    assert output.text == "Paris [1]"
    assert generator.contexts[0].user_id == "u1"


async def test_synthesizer_wraps_backend_failure(paris_chunk):
    with pytest.raises(GenerationError, match="backend unavailable"):
        await AnswerSynthesizer(FailingGenerator()).synthesize(
            "q", [make_reranked(paris_chunk)], make_intent(),
            AnswerabilityResult(can_answer=True, confidence=0.8, reasoning="ok"),
        )


async def test_synthesizer_rejects_empty_answer(paris_chunk):
    with pytest.raises(GenerationError, match="empty"):
        await AnswerSynthesizer(StaticGenerator("   ")).synthesize(
            "q", [make_reranked(paris_chunk)], make_intent(),
            AnswerabilityResult(can_answer=True, confidence=0.8, reasoning="ok"),
        )


async def test_synthesizer_timeout(paris_chunk):
    class SlowGenerator:
        async def generate(self, ctx):
            await asyncio.sleep(1)

    with pytest.raises(GenerationError, match="timed out"):
        await AnswerSynthesizer(SlowGenerator(), timeout_s=0.01).synthesize(
            "q", [make_reranked(paris_chunk)], make_intent(),
            AnswerabilityResult(can_answer=True, confidence=0.8, reasoning="ok"),
        )
