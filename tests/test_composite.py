"""
Unit tests for the weighted composite + potential score.
"""
import pytest

from tier_engine.scoring.calibration import classify_potential
from tier_engine.scoring.composite import CompositeScorer, MetricInputs
from tier_engine.scoring.config import Metric


def _inputs(**overrides) -> MetricInputs:
    """Baseline mid-range customer, then override specific metrics."""
    values = {
        "deposit_amount": 1_000.0,       # DA score 28.75
        "ggr": 250.0,                    # GGR score 25
        "purchase_frequency": 6.0,       # PF score 50
        "avg_transaction_value": 50.0,   # ATV score 50
        "win_rate": 30.0,                # WIN_RATE score 50
    }
    values.update(overrides)
    return MetricInputs(**values)


class TestTotalScore:

    def test_weighted_sum_of_enabled_metrics(self):
        r = CompositeScorer().score(_inputs())
        # 0.30*28.75 + 0.40*25 + 0.15*50 + 0.15*50 (win rate disabled)
        assert r.total_score == pytest.approx(33.625)

    def test_disabled_metric_does_not_contribute(self):
        low = CompositeScorer().score(_inputs(win_rate=0.1))
        high = CompositeScorer().score(_inputs(win_rate=60))
        assert low.total_score == high.total_score

    def test_excluded_metric_counts_as_zero(self):
        r = CompositeScorer().score(_inputs(deposit_amount=0))
        assert r.metric_details[Metric.DA].score is None
        assert r.metric_scores[Metric.DA] == 0.0
        assert r.total_score == pytest.approx(25.0)

    def test_all_zero_customer(self):
        r = CompositeScorer().score(_inputs(
            deposit_amount=0, ggr=0, purchase_frequency=0, avg_transaction_value=0, win_rate=0,
        ))
        assert r.total_score == 0.0
        assert r.potential_score == 0.0

    def test_details_keep_label_and_raw_value(self):
        r = CompositeScorer().score(_inputs(ggr=float("nan")))
        detail = r.metric_details[Metric.GGR]
        assert detail.label.startswith("GGR")
        assert detail.raw_value is None
        assert detail.score is None
        assert r.metric_details[Metric.DA].raw_value == 1_000.0


class TestPotentialScore:

    def test_weighted_potential(self):
        r = CompositeScorer().score(_inputs())
        # 0.25*50 + 0.65*50 + 0.10*50
        assert r.potential_score == pytest.approx(50.0)
        assert classify_potential(r.potential_score) == "P2"

    def test_zero_win_rate_penalty(self):
        r = CompositeScorer().score(_inputs(win_rate=0))
        assert r.potential_score == pytest.approx(35.0)
        assert classify_potential(r.potential_score) == "P1"

    def test_clamped_at_zero(self):
        r = CompositeScorer().score(_inputs(
            purchase_frequency=0, avg_transaction_value=0, win_rate=0,
        ))
        assert r.potential_score == 0.0
        assert classify_potential(r.potential_score) == "ND_P"

    def test_clamped_at_hundred(self):
        scorer = CompositeScorer()
        assert scorer.potential({Metric.PF: 200, Metric.ATV: 200, Metric.WIN_RATE: 200}) == 100.0
