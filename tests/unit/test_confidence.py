"""Tests for final response confidence."""

import pytest

from rag_core.scoring.confidence import ConfidenceScorer


def test_weighted_combination(settings):
    scorer = ConfidenceScorer(settings)
    conf = scorer.score([0.8, 0.6], synthesis_confidence=0.5, answerability=0.7)
    assert conf == pytest.approx(0.4 * 0.7 + 0.3 * 0.5 + 0.3 * 0.7)


def test_capped(settings):
    assert ConfidenceScorer(settings).score([1.0], 1.0, 1.0) == 0.95


def test_no_citations(settings):
    conf = ConfidenceScorer(settings).score([], synthesis_confidence=1.0, answerability=1.0)
    assert conf == pytest.approx(0.6)


def test_dropped_citations_reduce_synthesis_weight(settings):
    scorer = ConfidenceScorer(settings)
    clean = scorer.score([0.8], 0.9, 0.7)
    penalized = scorer.score([0.8], 0.9, 0.7, dropped_citations=1)
    assert penalized == pytest.approx(clean - 0.3 * 0.9 * 0.5)
