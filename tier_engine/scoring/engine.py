"""
Tier Calculation Engine

Orchestrates one calibration run over a batch of raw rows:
  1. Normalize + aggregate rows per customer per cohort
  2. Score every metric on its curve
  3. Composite total + potential score
  4. Calibrate 6 boundaries once per cohort
  5. Assign tier 1-7 + name / group / potential tier
  6. Tier distribution per cohort

Pure computation, no I/O: identical rows always give identical results.
Called by the API (inline scoring) and by services.tier_refresh (DB runs).
"""
from __future__ import annotations

import time
from typing import Any, Iterable, Mapping, Optional

import structlog

from tier_engine.core.config import Settings, get_settings
from tier_engine.schemas.tier_request import ScoreModel, TierRunOptions
from tier_engine.schemas.tier_response import (
    CohortResult,
    MetricScoreDetail,
    TierAssignment,
    TierBucket,
    TierRunResult,
)
from tier_engine.scoring.calibration import (
    CalibrationMethod,
    assign_tier,
    calibrate,
    classify_potential,
    tier_distribution,
    tier_label,
)
from tier_engine.scoring.composite import CompositeResult, CompositeScorer, MetricInputs
from tier_engine.scoring.kmeans import kmeans_score
from tier_engine.services.aggregation import (
    Cohort,
    CustomerPeriodAggregate,
    Granularity,
    PurchaseFrequencyMode,
    build_cohorts,
)

logger = structlog.get_logger(__name__)


def resolve_options(options: Optional[TierRunOptions], settings: Optional[Settings] = None) -> TierRunOptions:
    """Fill unset knobs from settings; PF mode depends on the granularity."""
    settings = settings or get_settings()
    options = options or TierRunOptions()

    pf_default = (
        settings.monthly_pf_mode
        if options.granularity == Granularity.MONTHLY
        else settings.aggregated_pf_mode
    )
    return options.model_copy(update={
        "calibration_method": options.calibration_method or CalibrationMethod(settings.tier_calibration_method),
        "score_model": options.score_model or ScoreModel(settings.tier_score_model),
        "pf_mode": options.pf_mode or PurchaseFrequencyMode(pf_default),
        "split_by_line": settings.tier_split_by_line if options.split_by_line is None else options.split_by_line,
    })


def _composite(scorer: CompositeScorer, agg: CustomerPeriodAggregate) -> CompositeResult:
    return scorer.score(MetricInputs(
        deposit_amount=agg.deposit_amount,
        ggr=agg.ggr,
        purchase_frequency=agg.purchase_frequency,
        avg_transaction_value=agg.avg_transaction_value,
        win_rate=agg.win_rate,
    ))


def _calibration_score(model: ScoreModel, agg: CustomerPeriodAggregate, composite: CompositeResult) -> float:
    if model == ScoreModel.KMEANS:
        return kmeans_score(
            deposit_amount=agg.deposit_amount,
            ggr=agg.ggr,
            deposit_cases=agg.deposit_cases,
            purchase_frequency=agg.purchase_frequency,
            avg_transaction_value=agg.avg_transaction_value,
            win_rate=agg.win_rate,
        )
    return composite.total_score


def score_cohort(cohort: Cohort, options: TierRunOptions, scorer: CompositeScorer) -> CohortResult:
    """Score every member, calibrate once for the whole cohort, assign tiers."""
    composites = [_composite(scorer, m) for m in cohort.members]
    scores = [
        _calibration_score(options.score_model, m, c)
        for m, c in zip(cohort.members, composites)
    ]

    boundaries = calibrate(scores, options.calibration_method, options.tier_shares)

    assignments: list[TierAssignment] = []
    for member, composite, score in zip(cohort.members, composites, scores):
        tier = assign_tier(score, boundaries)
        label = tier_label(tier)
        assignments.append(TierAssignment(
            userkey=member.userkey,
            line=member.line,
            year=member.year,
            month=member.month,
            month_name=member.month_name,
            quarter=member.quarter,
            period_key=member.period_key,
            unique_code=member.unique_code,
            user_name=member.user_name,
            tier=tier,
            tier_name=label.tier_name,
            tier_group=label.tier_group,
            score=score,
            total_score=composite.total_score,
            potential_score=composite.potential_score,
            potential_tier=classify_potential(composite.potential_score),
            deposit_amount=member.deposit_amount,
            deposit_cases=member.deposit_cases,
            withdraw_amount=member.withdraw_amount,
            withdraw_cases=member.withdraw_cases,
            ggr=member.ggr,
            active_days=member.active_days,
            avg_transaction_value=round(member.avg_transaction_value, 4),
            purchase_frequency=round(member.purchase_frequency, 4),
            win_rate=round(member.win_rate, 4),
            metric_details={
                metric.value: MetricScoreDetail(
                    label=detail.label, raw_value=detail.raw_value, score=detail.score,
                )
                for metric, detail in composite.metric_details.items()
            },
        ))

    distribution = tier_distribution([a.tier for a in assignments])

    logger.info(
        "cohort_calibrated",
        cohort=cohort.cohort_key,
        members=len(assignments),
        boundaries=boundaries,
    )

    return CohortResult(
        cohort_key=cohort.cohort_key,
        period_key=cohort.period_key,
        line=cohort.line,
        boundaries=boundaries,
        distribution={t: TierBucket(**b) for t, b in distribution.items()},
        total_records=len(assignments),
        assignments=assignments,
    )


def run_for_period(
    rows: Iterable[Mapping[str, Any]],
    options: Optional[TierRunOptions] = None,
    scorer: Optional[CompositeScorer] = None,
    settings: Optional[Settings] = None,
) -> TierRunResult:
    """
    Main tier calculation entry point.

    Args:
        rows:     raw rows (any supported column shape), one per customer per month
        options:  granularity / calibration / score model / PF mode / split by line
        scorer:   composite scorer (built once and reused across runs)
        settings: override application settings (for tests)
    """
    t0 = time.perf_counter_ns()
    options = resolve_options(options, settings)
    scorer = scorer or CompositeScorer()

    # ── Step 1: Normalize + aggregate ──
    aggregated = build_cohorts(
        rows,
        granularity=options.granularity,
        pf_mode=options.pf_mode,
        split_by_line=options.split_by_line,
    )

    # ── Step 2: Score, calibrate + assign per cohort ──
    cohorts = [score_cohort(c, options, scorer) for c in aggregated.cohorts]
    total = sum(c.total_records for c in cohorts)

    elapsed_ms = int((time.perf_counter_ns() - t0) / 1_000_000)
    logger.info(
        "tier_calculation_complete",
        granularity=options.granularity.value,
        cohorts=len(cohorts),
        customers=total,
        rows_read=aggregated.rows_read,
        rows_skipped=aggregated.rows_skipped,
        elapsed_ms=elapsed_ms,
    )

    return TierRunResult(
        granularity=options.granularity.value,
        calibration_method=options.calibration_method.value,
        score_model=options.score_model.value,
        pf_mode=options.pf_mode.value,
        rows_read=aggregated.rows_read,
        rows_skipped=aggregated.rows_skipped,
        total_processed=total,
        cohorts=cohorts,
    )
