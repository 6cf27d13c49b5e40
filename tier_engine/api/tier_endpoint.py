"""
Tier scoring API — inline calculation, no storage.

POST /v1/tiers/score     → aggregate + score + calibrate a row set
POST /v1/tiers/movement  → tier movement between two periods
GET  /v1/tiers/config    → curves, weights and tier tables
GET  /v1/tiers/health    → health check
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException

from tier_engine.core.config import get_settings
from tier_engine.schemas.tier_request import ScoreTiersRequest, TierMovementRequest
from tier_engine.schemas.tier_response import TierMovementOut, TierMovementResponse, TierRunResult
from tier_engine.scoring.composite import CompositeScorer
from tier_engine.scoring.config import (
    DEFAULT_CONFIG,
    POTENTIAL_TIERS,
    STANDARD_TIER_MIN_SCORES,
    TARGET_TIER_SHARES,
    TIER_COLORS,
    TIER_GROUPS,
    TIER_NAMES,
)
from tier_engine.scoring.engine import run_for_period
from tier_engine.scoring.movement import calculate_tier_movement, movement_matrix, movement_summary

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/tiers", tags=["tiers"])

# Curves are sorted once; the scorer holds no per-request state
_scorer = CompositeScorer(DEFAULT_CONFIG)


@router.post(
    "/score",
    response_model=TierRunResult,
    summary="Score and tier an inline set of customer rows",
    description="Rows are aggregated per cohort, scored on the metric curves and calibrated per cohort.",
)
async def score_tiers(request: ScoreTiersRequest) -> TierRunResult:
    logger.info("tier_scoring_started", rows=len(request.rows), granularity=request.options.granularity.value)

    try:
        result = run_for_period(request.rows, request.options, scorer=_scorer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return result


@router.post("/movement", response_model=TierMovementResponse)
async def tier_movement(request: TierMovementRequest) -> TierMovementResponse:
    movements = calculate_tier_movement(request.current, request.previous)
    return TierMovementResponse(
        movements=[
            TierMovementOut(
                userkey=m.userkey,
                line=m.line,
                movement_type=m.movement_type.value,
                from_tier=m.from_tier,
                to_tier=m.to_tier,
                tier_change=m.tier_change,
                score_change=m.score_change,
            )
            for m in movements
        ],
        summary=movement_summary(movements),
        matrix=movement_matrix(movements),
    )


@router.get("/config")
async def scoring_config():
    config = DEFAULT_CONFIG
    return {
        "version": config.version,
        "curves": {
            metric.value: {
                "label": curve.label,
                "zero_fallback": curve.zero_fallback.value,
                "points": [{"value": p.value, "score": p.score} for p in curve.points],
            }
            for metric, curve in config.curves.items()
        },
        "weights": [
            {"metric": w.metric.value, "label": w.label, "weight": w.weight, "enabled": w.enabled}
            for w in config.weights
        ],
        "potential_weights": {
            "PF": config.potential_weights.pf,
            "ATV": config.potential_weights.atv,
            "WIN_RATE": config.potential_weights.win_rate,
            "zero_win_rate_penalty": config.potential_weights.zero_win_rate_penalty,
        },
        "tiers": [
            {
                "tier": tier,
                "tier_name": TIER_NAMES[tier],
                "tier_group": TIER_GROUPS[tier],
                "color": TIER_COLORS[tier],
                "standard_min_score": STANDARD_TIER_MIN_SCORES[tier],
                "target_share": TARGET_TIER_SHARES[tier - 1],
            }
            for tier in sorted(TIER_NAMES)
        ],
        "potential_tiers": [{"name": p.name, "min_score": p.min_score} for p in POTENTIAL_TIERS],
    }


@router.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "service": get_settings().app_name, "model_version": DEFAULT_CONFIG.version}
