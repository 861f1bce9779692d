"""Regex-based entity extraction: capitalized bigrams, dates, and times."""

from __future__ import annotations

import re

_UPPER = "A-ZÀ-ÖØ-Þ"
_LOWER = "a-zß-öø-ÿ"

_PATTERNS = (
    re.compile(rf"\b[{_UPPER}][{_LOWER}]+ [{_UPPER}][{_LOWER}]+\b"),
    re.compile(rf"\b[{_UPPER}][a-zA-Z{_LOWER}]+ [{_UPPER}][a-zA-Z{_LOWER}]+\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}h\d{0,2}\b"),
    re.compile(r"\b\d{1,2}:\d{2}\b"),
)


def extract_entities(text: str) -> list[str]:
    """Return unique entity strings in first-seen order."""
    found: dict[str, None] = {}
    for pattern in _PATTERNS:
        for match in pattern.findall(text):
            found.setdefault(match, None)
    return list(found)
