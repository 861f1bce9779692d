"""Answerability gate: decide from reranked evidence whether to answer at all.

overall = w_e*evidence + w_c*coverage + w_h*coherence

- evidence: per chunk, the fraction of query terms present times the chunk's
  final score, averaged over chunks.
- coverage: fraction of query terms found in at least one chunk.
- coherence: source diversity, ``0.7 * distinct_sources / chunks + 0.3``;
  a single chunk is fully coherent.
"""

from __future__ import annotations

from collections.abc import Sequence

from rag_core.config.settings import Settings
from rag_core.models.domain import AnswerabilityResult, RerankedChunk
from rag_core.observability.logger import get_logger
from rag_core.scoring.reason_codes import ReasonCode
from rag_core.signals.tokenizer import query_terms

logger = get_logger("answerability")

MAX_MISSING_INFO = 3

_REASONS = {
    "fr": {
        ReasonCode.NO_RESULTS: "Aucune source pertinente trouvée",
        ReasonCode.INSUFFICIENT_EVIDENCE: "Preuves insuffisantes dans les sources",
        ReasonCode.UNCOVERED_ASPECTS: "La question couvre des aspects non documentés",
        ReasonCode.CONTRADICTORY_SOURCES: "Sources contradictoires ou incohérentes",
        ReasonCode.LOW_ANSWERABILITY: "Les sources ne permettent pas une réponse fiable",
        None: "Sources suffisantes et cohérentes trouvées",
    },
    "en": {
        ReasonCode.NO_RESULTS: "No relevant sources found",
        ReasonCode.INSUFFICIENT_EVIDENCE: "Insufficient evidence in the sources",
        ReasonCode.UNCOVERED_ASPECTS: "The question covers undocumented aspects",
        ReasonCode.CONTRADICTORY_SOURCES: "Contradictory or inconsistent sources",
        ReasonCode.LOW_ANSWERABILITY: "The sources do not support a reliable answer",
        None: "Sufficient and consistent sources found",
    },
}


def suggested_queries(query: str, language: str = "fr") -> list[str]:
    head = query[:30]
    if language == "en":
        return [
            f'Could you rephrase your question about "{head}..."?',
            "Try to be more specific in your request",
            "Check that the information you are looking for is in your documents",
        ]
    return [
        f'Pouvez-vous reformuler votre question sur "{head}..." ?',
        "Essayez d'être plus spécifique dans votre demande",
        "Vérifiez que les informations recherchées sont dans vos documents",
    ]


class AnswerabilityGate:
    def __init__(self, settings: Settings) -> None:
        self._threshold = settings.answerability_threshold
        self._w_evidence = settings.answerability_w_evidence
        self._w_coverage = settings.answerability_w_coverage
        self._w_coherence = settings.answerability_w_coherence
        self._evidence_min = settings.evidence_min
        self._coverage_min = settings.coverage_min
        self._coherence_min = settings.coherence_min

    def assess(
        self,
        query: str,
        chunks: Sequence[RerankedChunk],
        language: str = "fr",
    ) -> AnswerabilityResult:
        reasons = _REASONS.get(language, _REASONS["fr"])
        if not chunks:
            return AnswerabilityResult(
                can_answer=False,
                confidence=0.0,
                reasoning=reasons[ReasonCode.NO_RESULTS],
                reason_code=ReasonCode.NO_RESULTS,
                suggested_queries=suggested_queries(query, language),
            )

        terms = query_terms(query)
        evidence = evidence_score(terms, chunks)
        coverage = coverage_score(terms, chunks)
        coherence = coherence_score(chunks)
        overall = (
            self._w_evidence * evidence
            + self._w_coverage * coverage
            + self._w_coherence * coherence
        )
        overall = max(0.0, min(1.0, overall))
        can_answer = overall >= self._threshold

        code: ReasonCode | None = None
        if not can_answer:
            if evidence < self._evidence_min:
                code = ReasonCode.INSUFFICIENT_EVIDENCE
            elif coverage < self._coverage_min:
                code = ReasonCode.UNCOVERED_ASPECTS
            elif coherence < self._coherence_min:
                code = ReasonCode.CONTRADICTORY_SOURCES
            else:
                code = ReasonCode.LOW_ANSWERABILITY

        result = AnswerabilityResult(
            can_answer=can_answer,
            confidence=overall,
            reasoning=reasons[code],
            reason_code=code,
            evidence=evidence,
            coverage=coverage,
            coherence=coherence,
        )
        if not can_answer:
            result.missing_info = missing_info(terms, chunks)
            result.suggested_queries = suggested_queries(query, language)

        logger.info(
            "answerability_assessed",
            can_answer=can_answer,
            overall=round(overall, 4),
            reason_code=code,
        )
        return result


def evidence_score(terms: list[str], chunks: Sequence[RerankedChunk]) -> float:
    if not terms or not chunks:
        return 0.0
    total = 0.0
    for chunk in chunks:
        content = chunk.content.lower()
        density = sum(1 for t in terms if t in content) / len(terms)
        total += density * chunk.final_score
    return min(1.0, total / len(chunks))


def coverage_score(terms: list[str], chunks: Sequence[RerankedChunk]) -> float:
    if not terms:
        return 0.0
    contents = [c.content.lower() for c in chunks]
    covered = sum(1 for t in terms if any(t in content for content in contents))
    return covered / len(terms)


def coherence_score(chunks: Sequence[RerankedChunk]) -> float:
    if len(chunks) < 2:
        return 1.0
    source_diversity = len({c.source for c in chunks}) / len(chunks)
    return min(1.0, source_diversity * 0.7 + 0.3)


def missing_info(terms: list[str], chunks: Sequence[RerankedChunk]) -> list[str]:
    contents = [c.content.lower() for c in chunks]
    uncovered = [t for t in terms if not any(t in content for content in contents)]
    return uncovered[:MAX_MISSING_INFO]
