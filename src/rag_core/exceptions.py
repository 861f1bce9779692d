"""Custom exception hierarchy for the RAG core.

Budget, rate-limit and circuit denials are not exceptions: they are
returned as ``CostDecision(allowed=False)`` values.
"""


class RAGCoreError(Exception):
    """Base exception for all RAG core errors."""


class QueryValidationError(RAGCoreError):
    """Query is empty or exceeds the configured length."""


class EmbeddingError(RAGCoreError):
    """Error generating embeddings."""


class RetrievalError(RAGCoreError):
    """Content index unreachable, timed out, or failed."""


class GenerationError(RAGCoreError):
    """Text-generation backend unreachable, timed out, or failed."""


class ConfigurationError(RAGCoreError):
    """Error in system configuration."""


class DeadlineExceeded(RAGCoreError):
    """Caller-supplied deadline elapsed between pipeline stages."""
