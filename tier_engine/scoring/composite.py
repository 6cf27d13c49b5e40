"""
Composite Scorer

Combines the five per-metric curve scores into:
  - total score:     weighted sum over the enabled module weights
  - potential score: PF / ATV / Win Rate subset, with a fixed penalty for a
                     zero win-rate score, clamped to 0-100

Per-metric raw value + score detail is kept alongside the totals.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from tier_engine.scoring.config import Metric, TierScoringConfig
from tier_engine.scoring.metric_scorer import MetricScorer, normalize_score


@dataclass(frozen=True)
class MetricInputs:
    deposit_amount: float
    ggr: float
    purchase_frequency: float
    avg_transaction_value: float
    win_rate: float

    def value(self, metric: Metric) -> float:
        return {
            Metric.DA: self.deposit_amount,
            Metric.GGR: self.ggr,
            Metric.PF: self.purchase_frequency,
            Metric.ATV: self.avg_transaction_value,
            Metric.WIN_RATE: self.win_rate,
        }[metric]


@dataclass(frozen=True)
class MetricDetail:
    label: str
    raw_value: Optional[float]
    score: Optional[float]


@dataclass(frozen=True)
class CompositeResult:
    total_score: float
    potential_score: float
    metric_scores: dict[Metric, float]
    metric_details: dict[Metric, MetricDetail]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class CompositeScorer:

    def __init__(self, config: Optional[TierScoringConfig] = None,
                 metric_scorer: Optional[MetricScorer] = None):
        self.metric_scorer = metric_scorer or MetricScorer(config)
        self.config = self.metric_scorer.config

    def score(self, inputs: MetricInputs) -> CompositeResult:
        details: dict[Metric, MetricDetail] = {}
        for metric in Metric:
            raw = inputs.value(metric)
            details[metric] = MetricDetail(
                label=self.metric_scorer.label(metric),
                raw_value=raw if raw is not None and math.isfinite(raw) else None,
                score=self.metric_scorer.score(metric, raw),
            )

        # None ("no contribution") counts as 0 from here on
        scores = {m: (d.score if d.score is not None else 0.0) for m, d in details.items()}

        total = sum(
            scores[w.metric] * w.weight
            for w in self.config.weights
            if w.enabled
        )

        return CompositeResult(
            total_score=normalize_score(total),
            potential_score=self.potential(scores),
            metric_scores=scores,
            metric_details=details,
        )

    def potential(self, scores: dict[Metric, float]) -> float:
        pw = self.config.potential_weights
        win = scores.get(Metric.WIN_RATE, 0.0)
        win_contribution = pw.zero_win_rate_penalty if win == 0 else win * pw.win_rate

        raw = (
            scores.get(Metric.PF, 0.0) * pw.pf
            + scores.get(Metric.ATV, 0.0) * pw.atv
            + win_contribution
        )
        return normalize_score(clamp(raw, 0.0, 100.0))
