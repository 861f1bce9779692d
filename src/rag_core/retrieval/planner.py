"""Retrieval plan construction from an intent analysis."""

from __future__ import annotations

from rag_core.models.domain import (
    IntentAnalysis,
    RetrievalFilters,
    RetrievalPlan,
    RetrievalStrategy,
    TimeRange,
)
from rag_core.models.schemas import QueryFilters, QueryOptions

MAX_RERANK_CANDIDATES = 20


class RetrievalPlanner:
    def __init__(self, default_min_score: float = 0.6) -> None:
        self._default_min_score = default_min_score

    def plan(
        self,
        intent: IntentAnalysis,
        options: QueryOptions | None = None,
        filters: QueryFilters | None = None,
    ) -> RetrievalPlan:
        strategy = select_strategy(intent)
        top_k = compute_top_k(intent, strategy)
        return RetrievalPlan(
            strategy=strategy,
            top_k=top_k,
            filters=self._build_filters(intent, options, filters),
            rerank_count=min(top_k * 2, MAX_RERANK_CANDIDATES),
            include_metadata="metadata" in intent.scope,
            time_range=intent.temporal,
        )

    def _build_filters(
        self,
        intent: IntentAnalysis,
        options: QueryOptions | None,
        filters: QueryFilters | None,
    ) -> RetrievalFilters:
        min_score = self._default_min_score
        if options is not None and options.threshold is not None:
            min_score = options.threshold
        elif filters is not None and filters.min_score is not None:
            min_score = filters.min_score

        date_range = None
        categories = sources = None
        if filters is not None:
            if filters.date_range is not None:
                date_range = TimeRange(start=filters.date_range.start, end=filters.date_range.end)
            if filters.categories:
                categories = tuple(filters.categories)
            if filters.sources:
                sources = tuple(filters.sources)

        return RetrievalFilters(
            min_score=min_score,
            categories=categories,
            scope=() if "general" in intent.scope else intent.scope,
            sources=sources,
            date_range=date_range,
        )


def select_strategy(intent: IntentAnalysis) -> RetrievalStrategy:
    if intent.type == "temporal":
        return "temporal"
    if intent.entities:
        return "entity-focused"
    if intent.complexity > 0.8:
        return "hybrid"
    return "semantic"


def compute_top_k(intent: IntentAnalysis, strategy: RetrievalStrategy) -> int:
    if intent.complexity > 0.8:
        return 8
    if strategy == "hybrid":
        return 6
    return 4
