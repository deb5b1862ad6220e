"""
Tests for services/confidence.py - heuristic confidence scoring.
"""

import pytest

from services.confidence import ConfidenceScorer


class TestConfidenceScorer:
    """Per-signal caps and the overall [0, 1] bound."""

    def setup_method(self):
        self.scorer = ConfidenceScorer()

    def test_no_signals_scores_zero(self):
        assert self.scorer.score(0, 0, 0, 0) == 0.0

    def test_single_keyword(self):
        assert self.scorer.score(1, 0, 0, 0) == pytest.approx(0.3)

    def test_keyword_contribution_is_capped(self):
        assert self.scorer.score(10, 0, 0, 0) == pytest.approx(0.6)

    def test_each_signal_is_capped_independently(self):
        assert self.scorer.score(0, 5, 0, 0) == pytest.approx(0.4)
        assert self.scorer.score(0, 0, 5, 0) == pytest.approx(0.3)
        assert self.scorer.score(0, 0, 0, 5) == pytest.approx(0.2)

    def test_total_is_capped_at_one(self):
        assert self.scorer.score(5, 5, 5, 5) == 1.0

    def test_typical_message(self):
        # keyword x2, date x1, time x1
        assert self.scorer.score(2, 1, 1, 0) == pytest.approx(0.95)

    def test_more_signals_never_lower_the_score(self):
        base = self.scorer.score(1, 1, 0, 0)
        assert self.scorer.score(2, 1, 0, 0) >= base
        assert self.scorer.score(1, 2, 0, 0) >= base
        assert self.scorer.score(1, 1, 1, 0) >= base
        assert self.scorer.score(1, 1, 0, 1) >= base

    def test_custom_weights(self):
        scorer = ConfidenceScorer({"keyword": (0.5, 0.5), "date": (0.5, 0.5)})
        assert scorer.score(3, 0, 7, 7) == pytest.approx(0.5)
        assert scorer.score(1, 1, 0, 0) == pytest.approx(1.0)
