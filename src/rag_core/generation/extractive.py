"""Deterministic local generation backend: cite the best-matching source sentences."""

from __future__ import annotations

import math
import re

from rag_core.models.domain import GenerationContext, GenerationOutput, ProposedCitation
from rag_core.observability.logger import get_logger
from rag_core.signals.tokenizer import query_terms, words

logger = get_logger("extractive")

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

MODEL_TAG = "local-extractive"


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_RE.split(text) if s.strip()]


class ExtractiveGenerator:
    """Selects the source sentences sharing the most terms with the query.

    Every sentence in the answer is quoted verbatim from a chunk and cited,
    so the backend cannot produce an ungrounded claim. Costs nothing.
    """

    def __init__(self, max_sentences: int = 3, max_chunks: int = 3) -> None:
        self._max_sentences = max_sentences
        self._max_chunks = max_chunks

    async def generate(self, context: GenerationContext) -> GenerationOutput:
        terms = query_terms(context.query)
        candidates: list[tuple[float, int, int, str]] = []
        for rank, chunk in enumerate(context.chunks[: self._max_chunks]):
            for position, sentence in enumerate(split_sentences(chunk.content)):
                sentence_words = set(words(sentence))
                overlap = sum(1 for t in terms if t in sentence_words)
                if overlap:
                    candidates.append((overlap / len(terms), rank, position, sentence))

        if not candidates and context.chunks:
            first = split_sentences(context.chunks[0].content)
            if first:
                candidates.append((0.0, 0, 0, first[0]))

        candidates.sort(key=lambda c: (-c[0], c[1], c[2]))
        selected = candidates[: self._max_sentences]

        parts: list[str] = []
        citations: list[ProposedCitation] = []
        for overlap, rank, _, sentence in selected:
            chunk = context.chunks[rank]
            parts.append(f"{sentence} [{rank + 1}]")
            citations.append(
                ProposedCitation(
                    text=sentence,
                    source_id=chunk.id,
                    confidence=round(min(0.95, 0.5 + overlap / 2), 4),
                )
            )

        text = " ".join(parts)
        confidence = (
            max(0.3, sum(c[0] for c in selected) / len(selected)) if selected else 0.0
        )

        logger.info(
            "extractive_answer",
            candidates=len(candidates),
            selected=len(selected),
            confidence=round(confidence, 4),
        )
        return GenerationOutput(
            text=text,
            citations=citations,
            tokens_used=math.ceil(len(text) / 4),
            cost=0.0,
            confidence=confidence,
            model=MODEL_TAG,
            reasoning=[f"selected {len(selected)} sentence(s) by query-term overlap"],
            strategy="extractive",
        )
