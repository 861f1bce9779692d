"""OpenAI-backed ``Encoder``, a drop-in for the hashed encoder."""

from __future__ import annotations

from openai import AsyncOpenAI

from rag_core.exceptions import EmbeddingError
from rag_core.observability.logger import get_logger

logger = get_logger("encoder")


class OpenAIEmbedder:
    """Encodes texts in request batches of ``batch_size``.

    Queries go through the same batched path as chunk texts, so both sides of
    a cosine comparison come from one model at one dimensionality.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        dimensions: int = 1536,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._batch_size = batch_size
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = await self._encode(texts)
        logger.info("texts_encoded", backend="openai", count=len(texts), model=self._model)
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        return (await self._encode([query]))[0]

    async def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        try:
            for start in range(0, len(texts), self._batch_size):
                response = await self._client.embeddings.create(
                    input=texts[start : start + self._batch_size],
                    model=self._model,
                    dimensions=self._dimensions,
                )
                vectors.extend(item.embedding for item in response.data)
        except Exception as e:
            raise EmbeddingError(
                f"openai encoder ({self._model}) failed on {len(texts)} text(s): {e}"
            ) from e
        return vectors
