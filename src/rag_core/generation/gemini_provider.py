"""Google Gemini generation backend using the google-genai SDK."""

from __future__ import annotations

import math
import re

from google import genai
from google.genai import types

from rag_core.exceptions import GenerationError
from rag_core.generation.extractive import split_sentences
from rag_core.generation.prompt_templates import (
    ANSWER_GENERATION_PROMPT,
    ANSWER_GENERATION_SYSTEM,
    ANSWER_STYLES,
    LANGUAGE_NAMES,
    format_evidence_block,
)
from rag_core.models.domain import GenerationContext, GenerationOutput, ProposedCitation, RerankedChunk
from rag_core.observability.logger import get_logger
from rag_core.signals.tokenizer import words

logger = get_logger("gemini")

_MARKER_RE = re.compile(r"\[(\d+)\]")


class GeminiGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.1,
        max_tokens: int = 1024,
        cost_per_1k_tokens: float = 0.0004,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._cost_per_1k = cost_per_1k_tokens

    async def generate(self, context: GenerationContext) -> GenerationOutput:
        prompt = ANSWER_GENERATION_PROMPT.format(
            query=context.query,
            evidence_block=format_evidence_block(context.chunks),
            answer_type=context.intent.expected_answer_type,
        )
        system = ANSWER_GENERATION_SYSTEM.format(
            language_name=LANGUAGE_NAMES.get(context.intent.language, "French"),
            style=ANSWER_STYLES.get(context.intent.expected_answer_type, "concise and direct"),
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self._temperature,
                    max_output_tokens=self._max_tokens,
                    system_instruction=system,
                ),
            )
        except Exception as e:
            raise GenerationError(f"Gemini generation failed: {e}") from e

        answer = response.text or ""
        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", None) or math.ceil(
            (len(prompt) + len(answer)) / 4
        )
        citations = citations_from_markers(answer, context.chunks)

        logger.info(
            "generated_answer",
            query_len=len(context.query),
            answer_len=len(answer),
            citations=len(citations),
            tokens=tokens,
        )
        return GenerationOutput(
            text=answer,
            citations=citations,
            tokens_used=tokens,
            cost=tokens / 1000 * self._cost_per_1k,
            confidence=0.8 if citations else 0.4,
            model=self._model,
            reasoning=[f"{len(citations)} cited evidence block(s)"],
            strategy="llm",
        )


def citations_from_markers(answer: str, chunks: list[RerankedChunk]) -> list[ProposedCitation]:
    """Map each ``[n]`` marker to the sentence of chunk n that best supports its claim."""
    citations: list[ProposedCitation] = []
    seen: set[tuple[int, str]] = set()
    for claim in split_sentences(answer):
        claim_words = {w for w in words(_MARKER_RE.sub("", claim)) if len(w) > 2}
        for marker in _MARKER_RE.findall(claim):
            idx = int(marker)
            if not 1 <= idx <= len(chunks):
                continue
            chunk = chunks[idx - 1]
            support, overlap = _best_supporting_sentence(claim_words, chunk.content)
            if not support or (idx, support) in seen:
                continue
            seen.add((idx, support))
            citations.append(
                ProposedCitation(
                    text=support,
                    source_id=chunk.id,
                    confidence=round(0.5 + 0.45 * overlap, 4),
                )
            )
    return citations


def _best_supporting_sentence(claim_words: set[str], content: str) -> tuple[str, float]:
    best, best_overlap = "", -1.0
    for sentence in split_sentences(content):
        overlap = (
            len(claim_words & set(words(sentence))) / len(claim_words) if claim_words else 0.0
        )
        if overlap > best_overlap:
            best, best_overlap = sentence, overlap
    return best, max(0.0, best_overlap)
