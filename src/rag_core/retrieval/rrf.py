"""Reciprocal Rank Fusion for merging ranked candidate lists."""

from __future__ import annotations

from collections import defaultdict


def reciprocal_rank_fusion(
    result_lists: list[list[tuple[str, float]]],
    k: int = 60,
    normalize: bool = False,
) -> list[tuple[str, float]]:
    """Merge multiple ranked result lists using RRF.

    Args:
        result_lists: Each list contains (chunk_id, score) tuples sorted by score descending.
        k: RRF constant (higher = more weight to lower-ranked results).
        normalize: Divide by the best achievable fused score (rank 1 in every
            list), mapping the result onto (0, 1].

    Returns:
        Merged (chunk_id, rrf_score) tuples sorted by score descending, ties by id.
    """
    scores: dict[str, float] = defaultdict(float)
    for result_list in result_lists:
        for rank, (chunk_id, _) in enumerate(result_list):
            scores[chunk_id] += 1.0 / (k + rank + 1)

    if normalize and scores:
        ceiling = len(result_lists) / (k + 1)
        scores = {cid: min(1.0, s / ceiling) for cid, s in scores.items()}

    return sorted(scores.items(), key=lambda x: (-x[1], x[0]))
