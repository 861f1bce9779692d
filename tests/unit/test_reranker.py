"""Tests for the adaptive multi-signal reranker."""

from datetime import datetime, timezone

import pytest

from conftest import make_chunk, make_intent

from rag_core.models.domain import TimeRange
from rag_core.retrieval.reranker import (
    DEFAULT_WEIGHTS,
    AdaptiveReranker,
    RerankConfig,
    adapt_weights,
    blend_scores,
    content_signature,
    entity_relevance,
    jaccard,
    query_entities,
    temporal_relevance,
)

PARIS = (
    "Paris est la capitale de la France. La ville est située sur la Seine, "
    "dans le nord du pays, et compte plus de deux millions d'habitants."
)
TOKYO = "Tokyo est la capitale du Japon. La ville est le centre politique et économique du pays."
EGG = (
    "Pour faire cuire un œuf à la coque, plongez l'œuf dans l'eau bouillante. "
    "Laissez cuire trois minutes, puis servez aussitôt."
)


def candidates():
    return [
        make_chunk("paris", PARIS, 0.95, source="atlas", title="La France"),
        make_chunk("tokyo", TOKYO, 0.7, source="atlas", title="Le Japon"),
        make_chunk("egg", EGG, 0.65, source="cuisine"),
    ]


class BrokenEncoder:
    async def embed_query(self, query):
        raise RuntimeError("encoder offline")

    async def embed_texts(self, texts):
        raise RuntimeError("encoder offline")


async def test_scores_and_signals_are_bounded():
    result = await AdaptiveReranker().rerank(
        "Quelle est la capitale de la France?", candidates(), make_intent(entities=("France",))
    )
    assert result.chunks
    assert not result.degraded
    for chunk in result.chunks:
        assert 0.0 <= chunk.rerank_score <= 1.0
        assert 0.0 <= chunk.final_score <= 1.0
        assert all(0.0 <= v <= 1.0 for v in chunk.signals.as_dict().values())
    assert sum(result.weights.values()) == pytest.approx(1.0)


async def test_best_candidate_stays_on_top():
    result = await AdaptiveReranker().rerank(
        "Quelle est la capitale de la France?", candidates(), make_intent(entities=("France",))
    )
    assert result.chunks[0].id == "paris"
    finals = [c.final_score for c in result.chunks]
    assert finals == sorted(finals, reverse=True)


async def test_reranking_is_deterministic():
    reranker = AdaptiveReranker()
    intent = make_intent(entities=("France",))
    first = await reranker.rerank("capitale de la France", candidates(), intent)
    second = await reranker.rerank("capitale de la France", candidates(), intent)
    assert [(c.id, c.final_score) for c in first.chunks] == [(c.id, c.final_score) for c in second.chunks]


async def test_near_duplicates_are_filtered():
    chunks = candidates() + [make_chunk("paris_copy", PARIS, 0.9, source="mirror")]
    result = await AdaptiveReranker().rerank("capitale de la France", chunks, make_intent())
    ids = [c.id for c in result.chunks]
    assert ("paris" in ids) != ("paris_copy" in ids)


async def test_low_quality_chunks_are_dropped():
    chunks = candidates() + [make_chunk("noise", "ok ok ok ok", 0.99)]
    result = await AdaptiveReranker().rerank("capitale de la France", chunks, make_intent())
    assert "noise" not in [c.id for c in result.chunks]


async def test_max_results_truncates():
    result = await AdaptiveReranker(config=RerankConfig(max_results=1)).rerank(
        "capitale de la France", candidates(), make_intent()
    )
    assert len(result.chunks) == 1


async def test_encoder_failure_falls_back_to_neutral_mapping():
    result = await AdaptiveReranker(encoder=BrokenEncoder()).rerank(
        "capitale de la France", candidates(), make_intent()
    )
    assert result.degraded
    assert [c.id for c in result.chunks] == ["paris", "tokyo", "egg"]
    assert all(c.rerank_score == 0.5 for c in result.chunks)
    assert [c.final_score for c in result.chunks] == [0.95, 0.7, 0.65]


async def test_disabled_reranking_keeps_retrieval_order():
    result = await AdaptiveReranker().rerank(
        "capitale de la France", candidates(), make_intent(), enabled=False
    )
    assert not result.degraded
    assert [c.id for c in result.chunks] == ["paris", "tokyo", "egg"]
    assert all(c.signals.semantic == 0.5 for c in result.chunks)


async def test_empty_candidates():
    result = await AdaptiveReranker().rerank("q", [], make_intent())
    assert result.chunks == []


def test_adapt_weights_factual_profile():
    weights = adapt_weights(DEFAULT_WEIGHTS, make_intent(type="factual"))
    assert sum(weights.as_dict().values()) == pytest.approx(1.0)
    assert weights.semantic > DEFAULT_WEIGHTS.semantic
    assert weights.lexical < DEFAULT_WEIGHTS.lexical
    assert weights.diversity == 0.0


def test_adapt_weights_comparative_adds_diversity():
    weights = adapt_weights(DEFAULT_WEIGHTS, make_intent(type="comparative"))
    assert weights.diversity > 0.0
    assert sum(weights.as_dict().values()) == pytest.approx(1.0)


def test_blend_scores_is_harmonic_mean():
    assert blend_scores(0.0, 0.0) == 0.0
    assert blend_scores(1.0, 1.0) == 1.0
    assert blend_scores(0.5, 1.0) == pytest.approx(2 * 0.5 / 1.5)
    assert blend_scores(1.0, 0.0) == 0.0


def test_temporal_relevance():
    moment = datetime(2024, 1, 10, tzinfo=timezone.utc)
    window = TimeRange(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end=datetime(2024, 1, 31, tzinfo=timezone.utc),
    )
    dated = make_chunk("d", "Réunion tenue hier au siège.", timestamp=moment)
    assert temporal_relevance(dated, make_intent()) == 0.5
    intent = make_intent(temporal=window, temporal_keywords=("hier", "semaine"))
    assert temporal_relevance(dated, intent) == pytest.approx(0.8)


def test_entity_relevance_is_case_insensitive():
    chunk = make_chunk("c", "paris et lyon")
    assert entity_relevance(chunk, ["Paris", "Marseille"]) == 0.5
    assert entity_relevance(chunk, []) == 0.5


def test_query_entities_add_dates_and_names_from_the_query():
    intent = make_intent(entities=("Apollo",))
    entities = query_entities("Que fit Neil Armstrong le 1969-07-20 avec Apollo ?", intent)
    assert entities == ["Apollo", "Neil Armstrong", "1969-07-20"]
    assert query_entities("Apollo", make_intent(entities=("Apollo",))) == ["Apollo"]


async def test_date_in_query_lifts_the_matching_chunk_entity_signal():
    chunks = [
        make_chunk("moon", "Le 1969-07-20, l'équipage d'Apollo a aluni dans la mer de la Tranquillité.", 0.8),
        make_chunk("mars", "Le 1976-07-20, la sonde Viking a atterri sur la plaine martienne.", 0.8),
    ]
    result = await AdaptiveReranker().rerank("Que s'est-il passé le 1969-07-20 ?", chunks, make_intent())
    by_id = {r.chunk.id: r for r in result.chunks}
    assert by_id["moon"].signals.entity == 1.0
    assert by_id["mars"].signals.entity == 0.0


def test_content_signature_and_jaccard():
    a = content_signature("capitale capitale france paris seine")
    assert a == frozenset({"capitale", "france", "paris", "seine"})
    assert jaccard(a, a) == 1.0
    assert jaccard(frozenset(), frozenset()) == 0.0
