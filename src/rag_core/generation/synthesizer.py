"""Answer synthesis: timeout-guarded delegation to the configured generation backend."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from rag_core.exceptions import GenerationError
from rag_core.models.domain import (
    AnswerabilityResult,
    GenerationContext,
    GenerationOutput,
    IntentAnalysis,
    RerankedChunk,
)
from rag_core.observability.logger import get_logger
from rag_core.protocols.llm import TextGenerator

logger = get_logger("synthesizer")


class AnswerSynthesizer:
    def __init__(self, generator: TextGenerator, timeout_s: float = 20.0) -> None:
        self._generator = generator
        self._timeout_s = timeout_s

    async def synthesize(
        self,
        query: str,
        chunks: Sequence[RerankedChunk],
        intent: IntentAnalysis,
        answerability: AnswerabilityResult,
        user_id: str = "anonymous",
        timeout_s: float | None = None,
    ) -> GenerationOutput:
        timeout = self._timeout_s if timeout_s is None else timeout_s
        context = GenerationContext(
            query=query,
            chunks=list(chunks),
            intent=intent,
            answerability=answerability,
            user_id=user_id,
        )
        try:
            output = await asyncio.wait_for(self._generator.generate(context), timeout=timeout)
        except TimeoutError as e:
            raise GenerationError(f"generation timed out after {timeout:.1f}s") from e
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"generation failed: {e}") from e

        if not output.text.strip():
            raise GenerationError("generation backend returned an empty answer")

        logger.info(
            "synthesized",
            model=output.model,
            evidence=len(chunks),
            proposed_citations=len(output.citations),
            tokens=output.tokens_used,
        )
        return output
