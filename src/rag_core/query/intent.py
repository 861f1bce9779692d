"""Query normalization, language detection, and intent analysis."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from langdetect import DetectorFactory, LangDetectException, detect

from rag_core.config.constants import (
    ANSWER_TYPE_MARKERS,
    COMPARISON_MARKERS,
    INTERROGATIVE_MARKERS,
    LOOKBACK_DAYS,
    NON_ENTITY_WORDS,
    QUERY_TYPE_MARKERS,
    RELATIVE_TIME_KEYWORDS,
    SCOPE_MARKERS,
    STOPWORDS,
)
from rag_core.models.domain import AnswerType, IntentAnalysis, QueryType, TimeRange
from rag_core.models.schemas import ConversationTurn
from rag_core.observability.logger import get_logger
from rag_core.signals.tokenizer import words

logger = get_logger("intent")

# langdetect is probabilistic unless seeded.
DetectorFactory.seed = 0

SUPPORTED_LANGUAGES = ("fr", "en")


class IntentAnalyzer:
    """Classify a query into a type / complexity / entity / temporal profile.

    Pure given its inputs and ``now``.
    """

    def analyze(
        self,
        query: str,
        conversation: Sequence[ConversationTurn] | None = None,
        preferred_language: str | None = None,
        now: datetime | None = None,
    ) -> IntentAnalysis:
        normalized = normalize(query)
        tokens = words(normalized)
        now = now or datetime.now(timezone.utc)

        entities = extract_query_entities(normalized)
        if not entities and conversation:
            entities = _context_entities(conversation)

        temporal_keywords = tuple(dict.fromkeys(t for t in tokens if t in RELATIVE_TIME_KEYWORDS))
        temporal = None
        if temporal_keywords:
            temporal = TimeRange(start=now - timedelta(days=LOOKBACK_DAYS), end=now)

        query_type = classify_type(tokens)
        intent = IntentAnalysis(
            type=query_type,
            complexity=score_complexity(normalized, tokens),
            scope=determine_scope(tokens),
            entities=tuple(entities),
            expected_answer_type=predict_answer_type(tokens),
            temporal=temporal,
            temporal_keywords=temporal_keywords,
            language=preferred_language or detect_language(normalized),
        )

        logger.info(
            "intent_analyzed",
            type=intent.type,
            complexity=round(intent.complexity, 2),
            entities=len(intent.entities),
            temporal=temporal is not None,
            language=intent.language,
        )
        return intent


def normalize(text: str) -> str:
    text = unicodedata.normalize("NFKC", text)
    return re.sub(r"\s+", " ", text).strip()


def detect_language(text: str) -> str:
    try:
        language = detect(text)
    except LangDetectException:
        return "en"
    return language if language in SUPPORTED_LANGUAGES else "en"


def score_complexity(query: str, tokens: list[str]) -> float:
    score = 0.0
    if len(query.split()) > 10:
        score += 0.3
    if query.count("?") > 1:
        score += 0.2
    if sum(1 for t in tokens if t in INTERROGATIVE_MARKERS) >= 2:
        score += 0.3
    if COMPARISON_MARKERS.intersection(tokens):
        score += 0.4
    return min(1.0, score)


def classify_type(tokens: list[str]) -> QueryType:
    token_set = set(tokens)
    for query_type, markers in QUERY_TYPE_MARKERS:
        if markers & token_set:
            return query_type
    return "factual"


def determine_scope(tokens: list[str]) -> tuple[str, ...]:
    token_set = set(tokens)
    scope = tuple(name for name, markers in SCOPE_MARKERS if markers & token_set)
    return scope or ("general",)


def predict_answer_type(tokens: list[str]) -> AnswerType:
    token_set = set(tokens)
    for answer_type, markers in ANSWER_TYPE_MARKERS:
        if markers & token_set:
            return answer_type
    return "short"


def extract_query_entities(query: str) -> list[str]:
    """Capitalized tokens longer than three characters, punctuation stripped."""
    found: dict[str, None] = {}
    for raw in query.split():
        token = raw.strip(".,;:!?()[]{}\"'«»")
        if len(token) <= 3 or not token[0].isupper():
            continue
        if token.lower() in NON_ENTITY_WORDS or token.lower() in STOPWORDS:
            continue
        found.setdefault(token, None)
    return list(found)


def _context_entities(conversation: Sequence[ConversationTurn]) -> list[str]:
    for turn in reversed(conversation):
        if turn.role == "user":
            return extract_query_entities(turn.content)
    return []
