"""
Inbound payloads for tier scoring.

Rows are passed through as plain dicts: column names are a storage concern
and are normalized by services.aggregation before anything is scored.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from tier_engine.scoring.calibration import CalibrationMethod
from tier_engine.scoring.movement import duplicate_keys
from tier_engine.services.aggregation import Granularity, PurchaseFrequencyMode


class ScoreModel(str, Enum):
    CURVE = "CURVE"      # piecewise-linear curves + weighted composite
    KMEANS = "KMEANS"    # standardized weighted segmentation score


class Currency(str, Enum):
    USC = "USC"
    SGD = "SGD"
    MYR = "MYR"


class TierRunOptions(BaseModel):
    """Knobs for one calibration run; None falls back to settings."""
    granularity: Granularity = Granularity.MONTHLY
    calibration_method: Optional[CalibrationMethod] = None
    tier_shares: Optional[list[float]] = Field(
        None, description="Tier 1 → 7 shares for TARGET_DISTRIBUTION",
    )
    score_model: Optional[ScoreModel] = None
    pf_mode: Optional[PurchaseFrequencyMode] = None
    split_by_line: Optional[bool] = None

    @field_validator("tier_shares")
    @classmethod
    def validate_shares(cls, v: Optional[list[float]]) -> Optional[list[float]]:
        if v is None:
            return v
        if len(v) != 7:
            raise ValueError("tier_shares must have exactly 7 entries (tier 1 → 7)")
        if any(s < 0 for s in v):
            raise ValueError("tier_shares must be non-negative")
        return v


class ScoreTiersRequest(BaseModel):
    """
    POST /v1/tiers/score

    Score + calibrate an inline row set. Nothing is persisted.
    """
    rows: list[dict[str, Any]] = Field(description="Raw customer rows, one per customer per month")
    options: TierRunOptions = Field(default_factory=TierRunOptions)


class TieredCustomerIn(BaseModel):
    userkey: str
    line: str
    tier: int = Field(ge=1, le=7)
    score: float = 0.0


class TierMovementRequest(BaseModel):
    """POST /v1/tiers/movement"""
    current: list[TieredCustomerIn]
    previous: list[TieredCustomerIn]

    @field_validator("current", "previous")
    @classmethod
    def validate_unique_customers(cls, v: list[TieredCustomerIn]) -> list[TieredCustomerIn]:
        duplicates = duplicate_keys(v)
        if duplicates:
            raise ValueError(f"duplicate (userkey, line) entries: {duplicates}")
        return v
