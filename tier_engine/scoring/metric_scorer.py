"""
Metric Score Calculator

Maps one raw metric value onto a 0-100 score by piecewise-linear
interpolation over the metric's configured curve:

  raw not finite         → None
  raw <= 0               → zero fallback (0 or None, per metric)
  raw < first anchor     → proportional toward zero, floored at 0.01
  raw >= last anchor     → last anchor score (saturates)
  otherwise              → linear between the bracketing anchors

Scores are rounded to 4 decimals.
"""
from __future__ import annotations

import math
from bisect import bisect_right
from typing import Optional

from tier_engine.scoring.config import (
    DEFAULT_CONFIG,
    Metric,
    MetricCurve,
    ScorePoint,
    TierScoringConfig,
    ZeroFallback,
)

BELOW_CURVE_FLOOR = 0.01


def normalize_score(value: float) -> float:
    return round(value, 4)


def clean_points(points: tuple[ScorePoint, ...]) -> tuple[ScorePoint, ...]:
    """Finite points only, ascending by value, first occurrence of a value wins."""
    finite = [p for p in points if math.isfinite(p.value) and math.isfinite(p.score)]
    finite.sort(key=lambda p: p.value)

    cleaned: list[ScorePoint] = []
    for p in finite:
        if cleaned and cleaned[-1].value == p.value:
            continue
        cleaned.append(p)
    return tuple(cleaned)


class SortedCurveCache:
    """Sorted anchor points per metric, computed once from the static curves."""

    def __init__(self, curves: dict[Metric, MetricCurve]):
        self._curves = curves
        self._points: dict[Metric, tuple[ScorePoint, ...]] = {}
        self._values: dict[Metric, list[float]] = {}

    def points(self, metric: Metric) -> tuple[ScorePoint, ...]:
        if metric not in self._points:
            curve = self._curves.get(metric)
            pts = clean_points(curve.points) if curve else ()
            self._points[metric] = pts
            self._values[metric] = [p.value for p in pts]
        return self._points[metric]

    def values(self, metric: Metric) -> list[float]:
        self.points(metric)
        return self._values[metric]


class MetricScorer:

    def __init__(self, config: Optional[TierScoringConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.cache = SortedCurveCache(self.config.curves)

    def curve(self, metric: Metric) -> Optional[MetricCurve]:
        return self.config.curves.get(metric)

    def label(self, metric: Metric) -> str:
        curve = self.curve(metric)
        return curve.label if curve else metric.value

    def score(self, metric: Metric, raw_value: Optional[float]) -> Optional[float]:
        if raw_value is None or not math.isfinite(raw_value):
            return None

        curve = self.curve(metric)
        if curve is None:
            return 0.0

        if raw_value <= 0:
            return 0.0 if curve.zero_fallback == ZeroFallback.ZERO else None

        points = self.cache.points(metric)
        if not points:
            return 0.0

        first, last = points[0], points[-1]

        if raw_value < first.value:
            if first.value <= 0:
                return normalize_score(first.score)
            return normalize_score(max(BELOW_CURVE_FLOOR, (raw_value / first.value) * first.score))

        if raw_value >= last.value:
            return normalize_score(last.score)

        idx = bisect_right(self.cache.values(metric), raw_value)
        left, right = points[idx - 1], points[idx]
        ratio = (raw_value - left.value) / (right.value - left.value)
        return normalize_score(left.score + ratio * (right.score - left.score))
