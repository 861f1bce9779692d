"""Text preprocessing shared by the lexical and semantic signals."""

from __future__ import annotations

import re

from rag_core.config.constants import STOPWORDS

_WORD_RE = re.compile(r"[\w']+", re.UNICODE)


def words(text: str) -> list[str]:
    """Lowercase word tokens with punctuation stripped, stopwords kept."""
    return [w.strip("'") for w in _WORD_RE.findall(text.lower()) if w.strip("'")]


def tokenize(text: str) -> list[str]:
    """Tokenize text for lexical scoring: lowercase, strip punctuation, remove stopwords."""
    return [t for t in words(text) if t not in STOPWORDS and len(t) > 1]


def query_terms(text: str) -> list[str]:
    """Content-bearing query terms (longer than two characters), in order, deduplicated."""
    seen: dict[str, None] = {}
    for w in words(text):
        if len(w) > 2:
            seen.setdefault(w, None)
    return list(seen)
