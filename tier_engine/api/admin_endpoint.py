"""
Admin API — tier recalculation trigger + tier table reads.

  POST /v1/admin/calculate-tiers
    → Recalculate tiers for one currency / period and write them back

  GET /v1/admin/tiers/{currency}
    → Read persisted tier rows for one period
"""
from __future__ import annotations

import asyncio
from typing import Optional, Union

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tier_engine.models.database import get_db
from tier_engine.models.tier_assignment import TIER_MODELS
from tier_engine.schemas.tier_request import Currency, TierRunOptions
from tier_engine.services.aggregation import MONTH_NAMES, Granularity, parse_month
from tier_engine.services.tier_refresh import run_refresh

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/admin", tags=["admin"])


# ── Pydantic Schemas ──

class CalculateTiersRequest(BaseModel):
    currency: str = Field(description="USC | SGD | MYR")
    year: int
    month: Optional[Union[int, str]] = Field(None, description="Month name or number; omit for every month of the year")
    quarter: Optional[int] = Field(None, ge=1, le=4)
    line: Optional[str] = None
    granularity: Granularity = Granularity.MONTHLY
    options: Optional[TierRunOptions] = None
    triggered_by: str = "admin"


class RefreshResponse(BaseModel):
    triggered_by: str
    status: str
    message: str
    job_result: Optional[dict] = None


class TierRowResponse(BaseModel):
    userkey: str
    year: int
    month: str
    line: str
    unique_code: Optional[str] = None
    user_name: Optional[str] = None
    tier: Optional[int] = None
    tier_name: Optional[str] = None
    tier_group: Optional[str] = None
    score: Optional[float] = None
    potential_score: Optional[float] = None
    potential_tier: Optional[str] = None


def _currency(value: str) -> Currency:
    try:
        return Currency(value.upper())
    except ValueError:
        raise HTTPException(400, "Invalid currency. Must be USC, SGD, or MYR")


# ── Endpoints ──

@router.post(
    "/calculate-tiers",
    response_model=RefreshResponse,
    summary="Recalculate customer tiers for a currency and period",
    description=(
        "Reads the currency's tier table for the period, aggregates per customer, "
        "calibrates boundaries per cohort and upserts tier / tier_name / tier_group / score "
        "in batches. Quarterly and yearly runs are returned without being written."
    ),
)
async def calculate_tiers(request: CalculateTiersRequest):
    """
    Runs synchronously (awaited) so the caller gets the full result.
    The underlying psycopg2 calls are run in a thread pool to avoid blocking the event loop.
    """
    currency = _currency(request.currency)
    if request.month is not None and parse_month(request.month) is None:
        raise HTTPException(400, f"Invalid month: {request.month}")

    logger.info(
        "tier_calculation_triggered",
        triggered_by=request.triggered_by,
        currency=currency.value,
        year=request.year,
        month=request.month,
    )

    try:
        result = await asyncio.to_thread(
            run_refresh,
            currency=currency.value,
            year=request.year,
            month=request.month,
            quarter=request.quarter,
            line=request.line,
            granularity=request.granularity,
            options=request.options,
        )
    except Exception as e:
        logger.error("tier_calculation_failed", error=str(e), triggered_by=request.triggered_by)
        raise HTTPException(
            status_code=500,
            detail=f"Tier calculation failed: {e}",
        )

    if result["total_processed"] == 0:
        message = "No records found to calculate"
    else:
        message = (
            f"Tiers calculated for {result['total_processed']} customers in "
            f"{result['periods']} periods, {result['total_updated']} rows updated, "
            f"{result['failed_batches']} failed batches ({result['elapsed_seconds']}s)"
        )

    return RefreshResponse(
        triggered_by=request.triggered_by,
        status=result["status"],
        message=message,
        job_result=result,
    )


@router.get("/tiers/{currency}", response_model=list[TierRowResponse])
async def list_tiers(
    currency: str,
    year: int,
    month: Optional[str] = None,
    line: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    model = TIER_MODELS[_currency(currency)]

    stmt = select(model).where(model.year == year)
    if month is not None:
        month_num = parse_month(month)
        if month_num is None:
            raise HTTPException(400, f"Invalid month: {month}")
        stmt = stmt.where(model.month == MONTH_NAMES[month_num - 1])
    if line:
        stmt = stmt.where(model.line == line)
    stmt = stmt.order_by(model.tier, model.score.desc(), model.userkey)

    result = await db.execute(stmt)
    return [TierRowResponse.model_validate(row, from_attributes=True) for row in result.scalars()]
