"""
Tier Boundary Calibration + Tier Assignment

Boundaries are 6 non-decreasing cut-points computed per cohort (one period,
optionally one line) so that tier membership is population-relative:
tier 1 in January and tier 1 in February cover different score ranges.

  QUANTILE             equal-frequency split at the k/7 marks (default)
  TARGET_DISTRIBUTION  business split 5/10/15/25/25/15/5 % (tier 1 → 7)
  FIXED_THRESHOLDS     static standard minimum scores, not population relative

Assignment: tier = 7 - #(cut-points <= score), clamped to 1..7.
Tier 1 is the best tier; a higher score never yields a higher tier number.

Degenerate cohorts:
  empty        → [0.0] * 6
  single score → every cut-point equals that score → the customer is tier 1
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from tier_engine.scoring.config import (
    POTENTIAL_TIERS,
    STANDARD_TIER_MIN_SCORES,
    TARGET_TIER_SHARES,
    TIER_COLORS,
    TIER_COUNT,
    TIER_GROUPS,
    TIER_NAMES,
)

BOUNDARY_COUNT = TIER_COUNT - 1
EQUAL_TIER_SHARES: tuple[float, ...] = tuple(1.0 / TIER_COUNT for _ in range(TIER_COUNT))

# Absorbs float noise in cumulative shares (3 × 1/7 × 7 = 2.9999999999999996)
_SHARE_EPSILON = 1e-9


class CalibrationMethod(str, Enum):
    QUANTILE = "QUANTILE"
    TARGET_DISTRIBUTION = "TARGET_DISTRIBUTION"
    FIXED_THRESHOLDS = "FIXED_THRESHOLDS"


@dataclass(frozen=True)
class TierLabel:
    tier: int
    tier_name: str
    tier_group: str
    color: str


def _cut_points(sorted_scores: Sequence[float], shares_top_down: Sequence[float]) -> list[float]:
    """
    Cut-points at the cumulative bottom-up shares of an ascending score list.
    shares_top_down[0] is the share of tier 1 (best).
    """
    n = len(sorted_scores)
    bottom_up = list(reversed(shares_top_down))

    cuts: list[float] = []
    cumulative = 0.0
    for share in bottom_up[:BOUNDARY_COUNT]:
        cumulative += share
        idx = int(math.floor(cumulative * n + _SHARE_EPSILON))
        cuts.append(sorted_scores[min(max(idx, 0), n - 1)])
    return cuts


def calibrate(
    scores: Iterable[float],
    method: CalibrationMethod = CalibrationMethod.QUANTILE,
    shares: Optional[Sequence[float]] = None,
) -> list[float]:
    """
    Compute the 6 ascending tier cut-points for one cohort.

    Args:
        scores: composite scores of every cohort member
        method: calibration method (default equal-frequency quantiles)
        shares: override tier shares (tier 1 → 7) for TARGET_DISTRIBUTION
    """
    method = CalibrationMethod(method)

    if method == CalibrationMethod.FIXED_THRESHOLDS:
        return [STANDARD_TIER_MIN_SCORES[t] for t in range(TIER_COUNT - 1, 0, -1)]

    ordered = sorted(s for s in scores if s is not None and math.isfinite(s))
    if not ordered:
        return [0.0] * BOUNDARY_COUNT

    if method == CalibrationMethod.TARGET_DISTRIBUTION:
        tier_shares = tuple(shares) if shares is not None else TARGET_TIER_SHARES
    else:
        tier_shares = EQUAL_TIER_SHARES

    if len(tier_shares) != TIER_COUNT:
        raise ValueError(f"Expected {TIER_COUNT} tier shares, got {len(tier_shares)}")

    return _cut_points(ordered, tier_shares)


def assign_tier(score: float, boundaries: Sequence[float]) -> int:
    passed = sum(1 for b in boundaries if b <= score)
    return min(TIER_COUNT, max(1, TIER_COUNT - passed))


def tier_label(tier: int) -> TierLabel:
    return TierLabel(
        tier=tier,
        tier_name=TIER_NAMES.get(tier, "Unknown"),
        tier_group=TIER_GROUPS.get(tier, "Unknown"),
        color=TIER_COLORS.get(tier, "#6b7280"),
    )


def classify_potential(potential_score: float) -> str:
    for definition in POTENTIAL_TIERS:
        if potential_score >= definition.min_score:
            return definition.name
    return POTENTIAL_TIERS[-1].name


def tier_distribution(tiers: Sequence[int]) -> dict[int, dict]:
    """Count + percentage per tier 1..7 (all tiers present, zero-filled)."""
    total = len(tiers)
    distribution = {}
    for tier in range(1, TIER_COUNT + 1):
        count = sum(1 for t in tiers if t == tier)
        distribution[tier] = {
            "tier": tier,
            "tier_name": TIER_NAMES[tier],
            "tier_group": TIER_GROUPS[tier],
            "count": count,
            "percentage": round(count / total * 100, 2) if total else 0.0,
        }
    return distribution
