"""Multi-signal, intent-adaptive reranker with diversity and quality gating."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from rag_core.config.constants import RECENT_CONTEXT_TURNS
from rag_core.models.domain import (
    IntentAnalysis,
    RerankedChunk,
    RerankWeights,
    RetrievedChunk,
    SignalVector,
)
from rag_core.models.schemas import ConversationTurn
from rag_core.observability.logger import get_logger
from rag_core.protocols.embedder import Encoder
from rag_core.signals.embedding import HashedEmbedder, cosine_similarity, rescale_similarity
from rag_core.signals.entities import extract_entities
from rag_core.signals.lexical import bm25_score
from rag_core.signals.quality import content_quality
from rag_core.signals.tokenizer import query_terms, words

logger = get_logger("reranker")

DEFAULT_WEIGHTS = RerankWeights(
    semantic=0.35, lexical=0.25, temporal=0.10, entity=0.15, context=0.10, quality=0.05
)

# Additive adjustments applied to the base profile before renormalisation.
INTENT_ADJUSTMENTS: dict[str, dict[str, float]] = {
    "factual": {"semantic": 0.10, "entity": 0.10, "lexical": -0.10},
    "temporal": {"temporal": 0.20, "semantic": -0.10},
    "procedural": {"context": 0.15, "quality": 0.10},
}
COMPARATIVE_DIVERSITY_WEIGHT = 0.1
SIGNATURE_SIZE = 10
TIMESTAMP_IN_RANGE_BOOST = 0.3


@dataclass(frozen=True)
class RerankConfig:
    weights: RerankWeights = DEFAULT_WEIGHTS
    diversity_factor: float = 0.2
    quality_threshold: float = 0.3
    max_results: int = 8
    bm25_k1: float = 1.5
    bm25_b: float = 0.75
    bm25_avg_doc_len: float = 100.0
    bm25_idf: float = 1.5


@dataclass
class RerankResult:
    chunks: list[RerankedChunk]
    degraded: bool = False
    weights: dict[str, float] = field(default_factory=dict)


class AdaptiveReranker:
    """Scores candidates on seven signals and blends them with the retrieval score.

    The final score is the harmonic mean ``2·r·o / (r + o)`` of the weighted
    rerank score ``r`` and the clamped original score ``o``, so a chunk must
    do well on both to rank high. Ties sort by chunk id. Any internal error
    degrades to the original ordering with neutral signals.
    """

    def __init__(self, encoder: Encoder | None = None, config: RerankConfig | None = None) -> None:
        self._encoder = encoder or HashedEmbedder()
        self._config = config or RerankConfig()

    @property
    def config(self) -> RerankConfig:
        return self._config

    async def rerank(
        self,
        query: str,
        chunks: Sequence[RetrievedChunk],
        intent: IntentAnalysis,
        conversation: Sequence[ConversationTurn] | None = None,
        max_results: int | None = None,
        enabled: bool = True,
    ) -> RerankResult:
        limit = max_results or self._config.max_results
        if not chunks:
            return RerankResult(chunks=[])
        if not enabled:
            return RerankResult(chunks=neutral_mapping(chunks, limit))

        try:
            return await self._rerank(query, chunks, intent, conversation or (), limit)
        except Exception as e:
            logger.warning("rerank_failed", error=str(e), candidates=len(chunks))
            return RerankResult(chunks=neutral_mapping(chunks, limit), degraded=True)

    async def _rerank(
        self,
        query: str,
        chunks: Sequence[RetrievedChunk],
        intent: IntentAnalysis,
        conversation: Sequence[ConversationTurn],
        limit: int,
    ) -> RerankResult:
        weights = adapt_weights(self._config.weights, intent)
        terms = query_terms(query)
        context_words = _context_words(conversation)
        entities = query_entities(query, intent)

        query_vector = await self._encoder.embed_query(query)
        chunk_vectors = await self._encoder.embed_texts([c.content for c in chunks])

        signatures = [content_signature(c.content) for c in chunks]
        scored: list[RerankedChunk] = []
        for i, chunk in enumerate(chunks):
            signals = SignalVector(
                semantic=rescale_similarity(cosine_similarity(query_vector, chunk_vectors[i])),
                lexical=bm25_score(
                    terms,
                    chunk.content,
                    k1=self._config.bm25_k1,
                    b=self._config.bm25_b,
                    avg_doc_len=self._config.bm25_avg_doc_len,
                    idf=self._config.bm25_idf,
                ),
                temporal=temporal_relevance(chunk, intent),
                entity=entity_relevance(chunk, entities),
                context=context_relevance(chunk, context_words),
                quality=quality_signal(chunk),
                diversity=1.0 - max((jaccard(signatures[i], s) for s in signatures[:i]), default=0.0),
            )
            rerank_score = weighted_score(signals, weights)
            scored.append(
                RerankedChunk(
                    chunk=chunk,
                    signals=signals,
                    rerank_score=rerank_score,
                    final_score=blend_scores(rerank_score, chunk.score),
                )
            )

        scored.sort(key=lambda c: (-c.final_score, c.id))
        diverse = diversity_filter(scored, self._config.diversity_factor)
        kept = [c for c in diverse if c.signals.quality >= self._config.quality_threshold]
        result = kept[:limit]

        logger.info(
            "reranked",
            input_count=len(chunks),
            after_diversity=len(diverse),
            output_count=len(result),
            intent=intent.type,
            top_score=round(result[0].final_score, 4) if result else 0.0,
        )
        return RerankResult(chunks=result, weights=weights.as_dict())


def adapt_weights(base: RerankWeights, intent: IntentAnalysis) -> RerankWeights:
    adjusted = base
    for name, delta in INTENT_ADJUSTMENTS.get(intent.type, {}).items():
        adjusted = replace(adjusted, **{name: getattr(adjusted, name) + delta})
    if intent.type == "comparative":
        adjusted = replace(adjusted, diversity=COMPARATIVE_DIVERSITY_WEIGHT)
    return adjusted.normalized()


def weighted_score(signals: SignalVector, weights: RerankWeights) -> float:
    values = signals.as_dict()
    total = sum(w * values[name] for name, w in weights.as_dict().items())
    return max(0.0, min(1.0, total))


def blend_scores(rerank_score: float, original_score: float) -> float:
    r = max(0.0, min(1.0, rerank_score))
    o = max(0.0, min(1.0, original_score))
    if r + o == 0:
        return 0.0
    return 2 * r * o / (r + o)


def temporal_relevance(chunk: RetrievedChunk, intent: IntentAnalysis) -> float:
    timestamp = chunk.metadata.timestamp if chunk.metadata else None
    in_range = intent.temporal is not None and timestamp is not None and intent.temporal.contains(timestamp)

    if not intent.temporal_keywords:
        score = 0.5
    else:
        content_words = set(words(chunk.content))
        hits = sum(1 for k in intent.temporal_keywords if k in content_words)
        score = hits / len(intent.temporal_keywords)

    if in_range:
        score += TIMESTAMP_IN_RANGE_BOOST
    return min(1.0, score)


def query_entities(query: str, intent: IntentAnalysis) -> list[str]:
    """Intent entities plus the dates, times and name bigrams found in the raw query."""
    found = dict.fromkeys(intent.entities)
    found.update(dict.fromkeys(extract_entities(query)))
    return list(found)


def entity_relevance(chunk: RetrievedChunk, entities: Sequence[str]) -> float:
    if not entities:
        return 0.5
    content = chunk.content.lower()
    hits = sum(1 for e in entities if e.lower() in content)
    return hits / len(entities)


def context_relevance(chunk: RetrievedChunk, context_words: list[str]) -> float:
    if not context_words:
        return 0.5
    content_words = set(words(chunk.content))
    return sum(1 for w in context_words if w in content_words) / len(context_words)


def quality_signal(chunk: RetrievedChunk) -> float:
    score = content_quality(chunk.content)
    if chunk.metadata is not None:
        if chunk.metadata.title:
            score += 0.05
        if chunk.metadata.date or chunk.metadata.timestamp:
            score += 0.05
    return max(0.0, min(1.0, score))


def content_signature(content: str) -> frozenset[str]:
    """The ten most frequent words longer than four characters."""
    counts = Counter(w for w in words(content) if len(w) > 4)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return frozenset(w for w, _ in ranked[:SIGNATURE_SIZE])


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def diversity_filter(chunks: list[RerankedChunk], diversity_factor: float) -> list[RerankedChunk]:
    """Keep the top chunk, then drop any whose signature is too close to a kept one."""
    if not chunks:
        return []
    max_similarity = 1.0 - diversity_factor
    kept = [chunks[0]]
    kept_signatures = [content_signature(chunks[0].content)]
    for chunk in chunks[1:]:
        signature = content_signature(chunk.content)
        if any(jaccard(signature, s) > max_similarity for s in kept_signatures):
            continue
        kept.append(chunk)
        kept_signatures.append(signature)
    return kept


def neutral_mapping(chunks: Sequence[RetrievedChunk], limit: int) -> list[RerankedChunk]:
    """Original retrieval order with neutral signals."""
    return [
        RerankedChunk(
            chunk=c,
            signals=SignalVector.neutral(),
            rerank_score=0.5,
            final_score=max(0.0, min(1.0, c.score)),
        )
        for c in list(chunks)[:limit]
    ]


def _context_words(conversation: Sequence[ConversationTurn]) -> list[str]:
    recent = conversation[-RECENT_CONTEXT_TURNS:] if conversation else []
    found: dict[str, None] = {}
    for turn in recent:
        for w in words(turn.content):
            if len(w) > 3:
                found.setdefault(w, None)
    return list(found)
