"""BM25-style term-frequency score against a single chunk.

Uses an approximate corpus IDF constant instead of real document
frequencies, so the score is computable without access to the index.
"""

from __future__ import annotations

from collections import Counter

from rag_core.signals.tokenizer import tokenize


def bm25_score(
    query_terms: list[str],
    content: str,
    k1: float = 1.5,
    b: float = 0.75,
    avg_doc_len: float = 100.0,
    idf: float = 1.5,
) -> float:
    """Return the BM25 score as a fraction of its saturation ceiling, in [0, 1]."""
    terms = [t for t in dict.fromkeys(query_terms) if t]
    if not terms:
        return 0.0
    doc_tokens = tokenize(content)
    if not doc_tokens:
        return 0.0

    tf = Counter(doc_tokens)
    length_norm = 1.0 - b + b * (len(doc_tokens) / avg_doc_len)
    raw = 0.0
    for term in terms:
        freq = tf.get(term, 0)
        if freq:
            raw += idf * freq * (k1 + 1.0) / (freq + k1 * length_norm)

    ceiling = len(terms) * idf * (k1 + 1.0)
    return max(0.0, min(1.0, raw / ceiling))
