"""Content-quality heuristic for retrieved chunks."""

from __future__ import annotations

import re

from rag_core.config.constants import TRANSITION_WORDS
from rag_core.signals.tokenizer import words

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def content_quality(content: str, min_len: int = 50, max_len: int = 500) -> float:
    """Score length-in-range, sentence count, lexical diversity and connectives."""
    score = 0.0

    length = len(content)
    if min_len <= length <= max_len:
        score += 0.3
    elif length >= 20:
        score += 0.1

    sentences = [s for s in _SENTENCE_SPLIT.split(content) if len(s.strip()) > 10]
    if len(sentences) >= 2:
        score += 0.2

    tokens = content.lower().split()
    if tokens:
        score += (len(set(tokens)) / len(tokens)) * 0.3

    if TRANSITION_WORDS.intersection(words(content)):
        score += 0.2

    return max(0.0, min(1.0, score))
