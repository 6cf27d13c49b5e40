"""
Tier calculation results returned to the dashboard.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class MetricScoreDetail(BaseModel):
    """Per-metric transparency for the UI."""
    label: str
    raw_value: Optional[float] = None
    score: Optional[float] = None


class TierAssignment(BaseModel):
    """One customer in one cohort; upserted per (userkey, year, month, line)."""
    userkey: str
    line: str
    year: int
    month: Optional[int] = None
    month_name: Optional[str] = None
    quarter: Optional[int] = None
    period_key: str
    unique_code: Optional[str] = None
    user_name: Optional[str] = None

    # ── Tier ──
    tier: int = Field(ge=1, le=7)
    tier_name: str
    tier_group: str
    score: float = Field(description="Score the cohort was calibrated on")
    total_score: float = Field(description="Curve composite total score (0-100)")
    potential_score: float
    potential_tier: str

    # ── Aggregated metrics ──
    deposit_amount: float
    deposit_cases: float
    withdraw_amount: float
    withdraw_cases: float
    ggr: float
    active_days: float
    avg_transaction_value: float
    purchase_frequency: float
    win_rate: float

    metric_details: dict[str, MetricScoreDetail] = {}


class TierBucket(BaseModel):
    tier: int
    tier_name: str
    tier_group: str
    count: int
    percentage: float


class CohortResult(BaseModel):
    cohort_key: str
    period_key: str
    line: Optional[str] = None
    boundaries: list[float] = Field(description="6 ascending cut-points")
    distribution: dict[int, TierBucket]
    total_records: int
    assignments: list[TierAssignment]


class TierRunResult(BaseModel):
    granularity: str
    calibration_method: str
    score_model: str
    pf_mode: str
    rows_read: int
    rows_skipped: int
    total_processed: int
    cohorts: list[CohortResult]

    def assignments(self) -> list[TierAssignment]:
        return [a for c in self.cohorts for a in c.assignments]


class TierMovementOut(BaseModel):
    userkey: str
    line: str
    movement_type: str
    from_tier: Optional[int] = None
    to_tier: Optional[int] = None
    tier_change: int
    score_change: float


class TierMovementResponse(BaseModel):
    movements: list[TierMovementOut]
    summary: dict
    matrix: dict
