"""Final response confidence: CONF = a*citation + b*synthesis + c*answerability, capped."""

from __future__ import annotations

from rag_core.config.settings import Settings


class ConfidenceScorer:
    def __init__(self, settings: Settings) -> None:
        self.w_citation = settings.conf_w_citation
        self.w_synthesis = settings.conf_w_synthesis
        self.w_answerability = settings.conf_w_answerability
        self.cap = settings.conf_max

    def score(
        self,
        citation_confidences: list[float],
        synthesis_confidence: float,
        answerability: float,
        dropped_citations: int = 0,
    ) -> float:
        citation_score = (
            sum(citation_confidences) / len(citation_confidences) if citation_confidences else 0.0
        )
        proposed = len(citation_confidences) + dropped_citations
        if dropped_citations and proposed:
            synthesis_confidence *= len(citation_confidences) / proposed

        conf = (
            self.w_citation * citation_score
            + self.w_synthesis * synthesis_confidence
            + self.w_answerability * answerability
        )
        return max(0.0, min(self.cap, conf))
