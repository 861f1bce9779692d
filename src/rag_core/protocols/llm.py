"""Protocol for text-generation backends."""

from __future__ import annotations

from typing import Protocol

from rag_core.models.domain import GenerationContext, GenerationOutput


class TextGenerator(Protocol):
    async def generate(self, context: GenerationContext) -> GenerationOutput: ...
