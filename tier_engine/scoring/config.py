"""
Tier Scoring Configuration

Static business rules for the curve scoring model:
  1. Per-metric score curves (raw value → 0-100 score anchor points)
  2. Total-score weights per metric
  3. Potential-score weights (PF / ATV / Win Rate subset)
  4. Tier lookup tables (name, group, colour) and potential tiers

Changing a business rule means changing this module, not the algorithm.
Everything here is immutable and read-only at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Metric(str, Enum):
    DA = "DA"
    GGR = "GGR"
    PF = "PF"
    ATV = "ATV"
    WIN_RATE = "WIN_RATE"


class ZeroFallback(str, Enum):
    ZERO = "ZERO"          # raw <= 0 scores an explicit 0
    EXCLUDE = "EXCLUDE"    # raw <= 0 scores None (rendered as a dash)


@dataclass(frozen=True)
class ScorePoint:
    value: float
    score: float


@dataclass(frozen=True)
class MetricCurve:
    metric: Metric
    label: str
    points: tuple[ScorePoint, ...]
    zero_fallback: ZeroFallback


@dataclass(frozen=True)
class MetricWeight:
    metric: Metric
    label: str
    weight: float
    enabled: bool


@dataclass(frozen=True)
class PotentialWeights:
    pf: float
    atv: float
    win_rate: float
    zero_win_rate_penalty: float = -10.0


@dataclass(frozen=True)
class PotentialTierDefinition:
    name: str
    min_score: float


def _points(*pairs: tuple[float, float]) -> tuple[ScorePoint, ...]:
    return tuple(ScorePoint(value=v, score=s) for v, s in pairs)


# ═══════════════════════════════════════════════════════════════
# Metric curves (workbook Config!K:L anchor rows)
# ═══════════════════════════════════════════════════════════════
METRIC_CURVES: dict[Metric, MetricCurve] = {
    Metric.DA: MetricCurve(
        metric=Metric.DA,
        label="DA (Deposit Amount)",
        points=_points(
            (65, 5), (200, 10), (700, 25), (1_500, 35),
            (6_000, 50), (15_000, 65), (30_000, 80), (100_000, 100),
        ),
        zero_fallback=ZeroFallback.EXCLUDE,
    ),
    Metric.GGR: MetricCurve(
        metric=Metric.GGR,
        label="GGR (Gross Gaming Revenue)",
        points=_points(
            (30, 5), (100, 10), (250, 25), (1_000, 35),
            (4_000, 50), (6_500, 65), (16_500, 80), (20_000, 100),
        ),
        zero_fallback=ZeroFallback.ZERO,
    ),
    Metric.PF: MetricCurve(
        metric=Metric.PF,
        label="PF (Purchase Frequency)",
        points=_points((3, 15), (6, 50), (12, 100)),
        zero_fallback=ZeroFallback.EXCLUDE,
    ),
    Metric.ATV: MetricCurve(
        metric=Metric.ATV,
        label="ATV (Average Transaction Value)",
        points=_points((20, 15), (50, 50), (100, 100)),
        zero_fallback=ZeroFallback.EXCLUDE,
    ),
    Metric.WIN_RATE: MetricCurve(
        metric=Metric.WIN_RATE,
        label="Win Rate",
        points=_points((15, 15), (30, 50), (50, 100)),
        zero_fallback=ZeroFallback.ZERO,
    ),
}


# ═══════════════════════════════════════════════════════════════
# Total-score weights: sum of enabled weights is 1.0 by convention
# ═══════════════════════════════════════════════════════════════
MODULE_WEIGHTS: tuple[MetricWeight, ...] = (
    MetricWeight(Metric.DA, "Deposit (DA)", 0.30, True),
    MetricWeight(Metric.GGR, "GGR", 0.40, True),
    MetricWeight(Metric.PF, "Purchase Frequency (PF)", 0.15, True),
    MetricWeight(Metric.ATV, "Average Transaction Value (ATV)", 0.15, True),
    MetricWeight(Metric.WIN_RATE, "Win Rate", 0.0, False),
)

POTENTIAL_WEIGHTS = PotentialWeights(pf=0.25, atv=0.65, win_rate=0.10)


# ═══════════════════════════════════════════════════════════════
# Tier lookup tables: tier 1 is the best
# ═══════════════════════════════════════════════════════════════
TIER_COUNT = 7

TIER_NAMES: dict[int, str] = {
    1: "Super VIP",
    2: "Tier 5",
    3: "Tier 4",
    4: "Tier 3",
    5: "Tier 2",
    6: "Tier 1",
    7: "Regular",
}

TIER_GROUPS: dict[int, str] = {
    1: "High Value",
    2: "High Value",
    3: "Medium Value",
    4: "Medium Value",
    5: "Medium Value",
    6: "Low Value",
    7: "Low Value",
}

TIER_COLORS: dict[int, str] = {
    1: "#10b981",
    2: "#3B82F6",
    3: "#06b6d4",
    4: "#6366f1",
    5: "#8b5cf6",
    6: "#f59e0b",
    7: "#ef4444",
}

# Static minimum total score per tier (tier 1 → 7), used by FIXED_THRESHOLDS
STANDARD_TIER_MIN_SCORES: dict[int, float] = {
    1: 95.0,
    2: 75.0,
    3: 65.0,
    4: 40.0,
    5: 25.0,
    6: 15.0,
    7: 0.0,
}

# Business target split (tier 1 → 7), used by TARGET_DISTRIBUTION
TARGET_TIER_SHARES: tuple[float, ...] = (0.05, 0.10, 0.15, 0.25, 0.25, 0.15, 0.05)

POTENTIAL_TIERS: tuple[PotentialTierDefinition, ...] = (
    PotentialTierDefinition("P2", 50.0),
    PotentialTierDefinition("P1", 30.0),
    PotentialTierDefinition("ND_P", 0.0),
)


@dataclass(frozen=True)
class TierScoringConfig:
    """Immutable bundle handed to the scorers; built once at startup."""
    curves: dict[Metric, MetricCurve] = field(default_factory=lambda: dict(METRIC_CURVES))
    weights: tuple[MetricWeight, ...] = MODULE_WEIGHTS
    potential_weights: PotentialWeights = POTENTIAL_WEIGHTS
    version: str = "1.0"


DEFAULT_CONFIG = TierScoringConfig()
