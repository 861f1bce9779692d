"""Tests for Reciprocal Rank Fusion."""

import pytest

from rag_core.retrieval.rrf import reciprocal_rank_fusion


def test_rrf_single_list():
    results = [("a", 0.9), ("b", 0.8), ("c", 0.7)]
    fused = reciprocal_rank_fusion([results], k=60)
    assert [cid for cid, _ in fused] == ["a", "b", "c"]


def test_rrf_disjoint_lists_tie_breaks_by_id():
    fused = reciprocal_rank_fusion([[("b", 0.9)], [("a", 0.9)]], k=60)
    assert [cid for cid, _ in fused] == ["a", "b"]
    assert fused[0][1] == fused[1][1]


def test_rrf_empty():
    assert reciprocal_rank_fusion([[]], k=60) == []


def test_rrf_rewards_agreement():
    list1 = [("a", 0.9), ("b", 0.8), ("c", 0.7)]
    list2 = [("b", 0.9), ("d", 0.8)]
    fused = reciprocal_rank_fusion([list1, list2], k=60)
    assert fused[0][0] == "b"


def test_rrf_normalized_top_of_every_list_scores_one():
    fused = reciprocal_rank_fusion([[("a", 3.0), ("b", 1.0)], [("a", 0.9)]], k=60, normalize=True)
    assert fused[0] == ("a", pytest.approx(1.0))
    assert 0.0 < fused[1][1] < 0.5


def test_rrf_normalized_single_list_hit_is_half_with_two_lists():
    fused = reciprocal_rank_fusion([[("a", 1.0)], []], k=60, normalize=True)
    assert fused[0][1] == pytest.approx(0.5)
