"""Central configuration via Pydantic Settings. All values driven by env vars.

The numeric defaults are hand-tuned calibration parameters, not invariants.
Override them per deployment with ``RAG_*`` environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings

from rag_core.models.domain import Priority, RerankWeights


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # Embedding ("hashed" is the deterministic in-process encoder)
    embedding_backend: str = "hashed"
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 100
    embedding_dimensions: int = 1536
    hashed_embedding_dim: int = 384

    # LLM / Gemini
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.1
    gemini_max_tokens: int = 1024
    gemini_cost_per_1k_tokens: float = 0.0004

    # Query validation
    max_query_length: int = 2000

    # Retrieval
    default_min_score: float = 0.6
    rrf_k: int = 60
    retrieval_timeout_s: float = 5.0
    generation_timeout_s: float = 20.0

    # Lexical scoring (BM25 with an approximate corpus IDF)
    bm25_k1: float = 1.5
    bm25_b: float = 0.75
    bm25_avg_doc_len: float = 100.0
    bm25_idf: float = 1.5

    # Reranker base weight profile
    rerank_w_semantic: float = 0.35
    rerank_w_lexical: float = 0.25
    rerank_w_temporal: float = 0.10
    rerank_w_entity: float = 0.15
    rerank_w_context: float = 0.10
    rerank_w_quality: float = 0.05
    rerank_diversity_factor: float = 0.2
    rerank_quality_threshold: float = 0.3
    rerank_max_results: int = 8

    # Answerability gate
    answerability_threshold: float = 0.6
    answerability_w_evidence: float = 0.5
    answerability_w_coverage: float = 0.3
    answerability_w_coherence: float = 0.2
    evidence_min: float = 0.4
    coverage_min: float = 0.5
    coherence_min: float = 0.4

    # Response confidence
    conf_w_citation: float = 0.4
    conf_w_synthesis: float = 0.3
    conf_w_answerability: float = 0.3
    conf_max: float = 0.95

    # Admission control: budgets and rate limits
    daily_budget_usd: float = 5.0
    monthly_budget_usd: float = 100.0
    hourly_rate_limit: int = 60
    priority_rate_multipliers: dict[Priority, float] = {
        "critical": 1.5,
        "high": 1.2,
        "medium": 1.0,
        "low": 0.5,
    }
    priority_quotas: dict[Priority, float] = {
        "critical": 0.5,
        "high": 0.3,
        "medium": 0.15,
        "low": 0.05,
    }
    request_history_limit: int = 1000

    # Admission control: decision cache
    enable_caching: bool = True
    decision_cache_ttl_s: float = 300.0
    cache_time_bucket_s: float = 300.0
    cache_token_bucket: int = 100

    # Admission control: circuit breaker
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout_s: float = 60.0

    # Admission control: batching
    enable_batching: bool = True
    batchable_operations: list[str] = ["embedding", "summarization", "proactive_analysis"]
    batch_window_s: float = 5.0
    batch_max_size: int = 20
    batch_discount: float = 0.3

    # Background maintenance
    hourly_reset_interval_s: float = 3600.0
    cache_sweep_interval_s: float = 300.0
    idle_batch_flush_interval_s: float = 30.0

    # Retries
    retry_attempts: int = 3
    retry_backoff_base_s: float = 0.5
    retry_backoff_max_s: float = 30.0

    # Evaluation
    eval_concurrency: int = 3

    # Analytics sink ("" logs records instead of persisting them)
    metrics_db_path: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_prefix": "RAG_"}

    def rerank_weights(self) -> RerankWeights:
        return RerankWeights(
            semantic=self.rerank_w_semantic,
            lexical=self.rerank_w_lexical,
            temporal=self.rerank_w_temporal,
            entity=self.rerank_w_entity,
            context=self.rerank_w_context,
            quality=self.rerank_w_quality,
        )
