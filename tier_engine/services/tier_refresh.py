"""
tier_refresh.py
───────────────
Batch job that recalculates customer tiers for one currency and writes
them back to the currency's tier table (tier_usc_v1 / tier_sgd_v1 / tier_myr_v1).

  tier_*_v1 (monthly aggregates) → run_for_period → calibrate per cohort
  → assign tier 1-7 → upsert tier / tier_name / tier_group / score back.

Only monthly cohorts are written: the tables are keyed per
(userkey, year, month, line). Quarterly and yearly runs return their
results without touching storage.

Usage:
  python -m tier_engine.services.tier_refresh USC 2025 November
  OR via the admin endpoint: POST /v1/admin/calculate-tiers

Environment variables required:
  DATABASE_URL  - BI dashboard DB holding the tier tables
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import psycopg2
import psycopg2.extras
import structlog
from prometheus_client import Counter

from tier_engine.core.config import get_settings
from tier_engine.schemas.tier_request import Currency, TierRunOptions
from tier_engine.schemas.tier_response import TierAssignment, TierRunResult
from tier_engine.scoring.engine import run_for_period
from tier_engine.services.aggregation import MONTH_NAMES, Granularity, parse_month

logger = structlog.get_logger(__name__)

TIER_TABLES = {
    Currency.USC: "tier_usc_v1",
    Currency.SGD: "tier_sgd_v1",
    Currency.MYR: "tier_myr_v1",
}

TIER_RUNS = Counter(
    "tier_refresh_runs_total", "Tier refresh runs", ["currency", "status"],
)
TIER_ROWS_UPSERTED = Counter(
    "tier_rows_upserted_total", "Tier rows written back", ["currency"],
)
TIER_BATCHES_FAILED = Counter(
    "tier_upsert_batches_failed_total", "Upsert chunks skipped after retries", ["currency"],
)


# ─── Tier table read ──────────────────────────────────────────────

def build_fetch_query(
    table: str,
    year: int,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    line: Optional[str] = None,
) -> tuple[str, dict]:
    """SELECT for one period; months are stored as English names."""
    clauses = ["year = %(year)s"]
    params: dict[str, Any] = {"year": year}

    if month is not None:
        clauses.append("month = %(month)s")
        params["month"] = MONTH_NAMES[month - 1]
    elif quarter is not None:
        clauses.append("month = ANY(%(months)s)")
        params["months"] = MONTH_NAMES[(quarter - 1) * 3: quarter * 3]

    if line:
        clauses.append("line = %(line)s")
        params["line"] = line

    query = f"SELECT * FROM {table} WHERE " + " AND ".join(clauses) + " ORDER BY userkey, month;"
    return query, params


def fetch_tier_rows(conn, table: str, year: int, month: Optional[int] = None,
                    quarter: Optional[int] = None, line: Optional[str] = None) -> list[dict]:
    query, params = build_fetch_query(table, year, month, quarter, line)
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(query, params)
        rows = [dict(r) for r in cur.fetchall()]

    logger.info("tier_rows_fetched", table=table, rows=len(rows), year=year, month=month, quarter=quarter)
    return rows


# ─── Write back ───────────────────────────────────────────────────

UPSERT_TEMPLATE = """
INSERT INTO {table} (
    userkey, year, month, line,
    unique_code, user_name,
    total_deposit_amount, total_deposit_cases,
    total_withdraw_amount, total_withdraw_cases,
    total_ggr, active_days,
    avg_transaction_value, purchase_frequency, win_rate,
    tier, tier_name, tier_group, score,
    potential_score, potential_tier,
    updated_at
) VALUES (
    %(userkey)s, %(year)s, %(month)s, %(line)s,
    %(unique_code)s, %(user_name)s,
    %(total_deposit_amount)s, %(total_deposit_cases)s,
    %(total_withdraw_amount)s, %(total_withdraw_cases)s,
    %(total_ggr)s, %(active_days)s,
    %(avg_transaction_value)s, %(purchase_frequency)s, %(win_rate)s,
    %(tier)s, %(tier_name)s, %(tier_group)s, %(score)s,
    %(potential_score)s, %(potential_tier)s,
    NOW()
)
ON CONFLICT (userkey, year, month, line)
DO UPDATE SET
    avg_transaction_value = EXCLUDED.avg_transaction_value,
    purchase_frequency    = EXCLUDED.purchase_frequency,
    win_rate              = EXCLUDED.win_rate,
    tier                  = EXCLUDED.tier,
    tier_name             = EXCLUDED.tier_name,
    tier_group            = EXCLUDED.tier_group,
    score                 = EXCLUDED.score,
    potential_score       = EXCLUDED.potential_score,
    potential_tier        = EXCLUDED.potential_tier,
    updated_at            = NOW();
"""


def upsert_row(a: TierAssignment) -> dict:
    return {
        "userkey":               a.userkey,
        "year":                  a.year,
        "month":                 a.month_name,
        "line":                  a.line,
        "unique_code":           a.unique_code,
        "user_name":             a.user_name,
        "total_deposit_amount":  a.deposit_amount,
        "total_deposit_cases":   a.deposit_cases,
        "total_withdraw_amount": a.withdraw_amount,
        "total_withdraw_cases":  a.withdraw_cases,
        "total_ggr":             a.ggr,
        "active_days":           a.active_days,
        "avg_transaction_value": a.avg_transaction_value,
        "purchase_frequency":    a.purchase_frequency,
        "win_rate":              a.win_rate,
        "tier":                  a.tier,
        "tier_name":             a.tier_name,
        "tier_group":            a.tier_group,
        "score":                 a.score,
        "potential_score":       a.potential_score,
        "potential_tier":        a.potential_tier,
    }


def persist_assignments(
    conn,
    table: str,
    assignments: Sequence[TierAssignment],
    batch_size: int = 50,
    pause_seconds: float = 0.2,
    max_retries: int = 1,
    currency: str = "",
) -> dict:
    """
    Upsert assignments in chunks, committing each chunk on its own.

    A chunk that keeps failing after `max_retries` is rolled back, logged
    with its index and keys, and skipped; earlier chunks stay committed.
    Lost connections propagate.
    """
    if table not in TIER_TABLES.values():
        raise ValueError(f"Unknown tier table: {table}")

    query = UPSERT_TEMPLATE.format(table=table)
    rows = [upsert_row(a) for a in assignments if a.month_name is not None]
    chunks = [rows[i:i + batch_size] for i in range(0, len(rows), batch_size)]

    updated = 0
    failed_batches = 0

    for index, chunk in enumerate(chunks):
        attempt = 0
        while True:
            try:
                with conn.cursor() as cur:
                    psycopg2.extras.execute_batch(cur, query, chunk, page_size=batch_size)
                conn.commit()
                updated += len(chunk)
                break
            except psycopg2.OperationalError:
                raise
            except psycopg2.Error as e:
                conn.rollback()
                if attempt < max_retries:
                    attempt += 1
                    logger.warning("tier_upsert_batch_retry", table=table, batch_index=index, attempt=attempt)
                    continue
                failed_batches += 1
                TIER_BATCHES_FAILED.labels(currency=currency).inc()
                logger.error(
                    "tier_upsert_batch_failed",
                    table=table,
                    batch_index=index,
                    userkeys=[r["userkey"] for r in chunk],
                    error=str(e),
                )
                break

        if pause_seconds and index < len(chunks) - 1:
            time.sleep(pause_seconds)

    TIER_ROWS_UPSERTED.labels(currency=currency).inc(updated)
    logger.info(
        "tier_rows_written",
        table=table,
        processed=len(rows),
        updated=updated,
        failed_batches=failed_batches,
    )
    return {
        "total_processed": len(rows),
        "total_updated":   updated,
        "failed_batches":  failed_batches,
    }


# ─── Main entry point ─────────────────────────────────────────────

def _distributions(result: TierRunResult) -> dict:
    return {
        c.cohort_key: {
            "boundaries":    c.boundaries,
            "distribution":  {t: b.model_dump() for t, b in c.distribution.items()},
            "total_records": c.total_records,
        }
        for c in result.cohorts
    }


def run_refresh(
    currency: str,
    year: int,
    month: Optional[Any] = None,
    quarter: Optional[int] = None,
    line: Optional[str] = None,
    granularity: Optional[Granularity] = None,
    options: Optional[TierRunOptions] = None,
    database_url: Optional[str] = None,
) -> dict:
    """
    Full tier calculation cycle:
      1. Read the period's rows from the currency's tier table
      2. Aggregate, score, calibrate per cohort, assign tiers
      3. Write monthly tiers back in batches
      4. Return summary

    Args:
        currency:     USC | SGD | MYR
        year:         period year
        month:        1-12 or month name (monthly run of one month)
        quarter:      1-4 (restrict rows to one quarter)
        line:         restrict rows to one line
        granularity:  MONTHLY (default) | QUARTERLY | YEARLY
        options:      calibration / score model / PF overrides
        database_url: Override DATABASE_URL (for testing)
    """
    settings = get_settings()
    cur_enum = Currency(currency)
    table = TIER_TABLES[cur_enum]
    month_num = parse_month(month) if month is not None else None
    if month is not None and month_num is None:
        raise ValueError(f"Invalid month: {month}")

    options = (options or TierRunOptions()).model_copy()
    if granularity is not None:
        options.granularity = Granularity(granularity)

    url = database_url or settings.sync_database_url
    if not url:
        raise ValueError("DATABASE_URL not set: cannot connect to tier tables")

    started_at = datetime.now(timezone.utc)
    logger.info(
        "tier_refresh_started",
        currency=cur_enum.value,
        year=year,
        month=month_num,
        quarter=quarter,
        line=line,
        granularity=options.granularity.value,
    )

    conn = psycopg2.connect(url)
    try:
        # Step 1: Read
        rows = fetch_tier_rows(conn, table, year, month_num, quarter, line)

        # Step 2: Calculate
        result = run_for_period(rows, options)

        # Step 3: Write (monthly cohorts only)
        if result.granularity == Granularity.MONTHLY.value:
            written = persist_assignments(
                conn,
                table,
                result.assignments(),
                batch_size=settings.tier_upsert_batch_size,
                pause_seconds=settings.tier_upsert_pause_seconds,
                max_retries=settings.tier_upsert_max_retries,
                currency=cur_enum.value,
            )
        else:
            written = {"total_processed": result.total_processed, "total_updated": 0, "failed_batches": 0}
    except Exception:
        TIER_RUNS.labels(currency=cur_enum.value, status="error").inc()
        raise
    finally:
        conn.close()

    elapsed = (datetime.now(timezone.utc) - started_at).total_seconds()
    status = "success" if written["failed_batches"] == 0 else "partial"
    TIER_RUNS.labels(currency=cur_enum.value, status=status).inc()

    summary = {
        "currency":        cur_enum.value,
        "table":           table,
        "granularity":     result.granularity,
        "rows_read":       result.rows_read,
        "rows_skipped":    result.rows_skipped,
        "total_processed": written["total_processed"],
        "total_updated":   written["total_updated"],
        "failed_batches":  written["failed_batches"],
        "periods":         len(result.cohorts),
        "elapsed_seconds": round(elapsed, 2),
        "status":          status,
    }
    logger.info("tier_refresh_complete", **summary)
    summary["distributions"] = _distributions(result)
    return summary


if __name__ == "__main__":
    import sys
    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 3:
        print("usage: python -m tier_engine.services.tier_refresh CURRENCY YEAR [MONTH]", file=sys.stderr)
        sys.exit(2)

    try:
        result = run_refresh(
            currency=sys.argv[1].upper(),
            year=int(sys.argv[2]),
            month=sys.argv[3] if len(sys.argv) > 3 else None,
        )
        print(f"✓ Tiers refreshed: {result['total_updated']}/{result['total_processed']} rows, "
              f"{result['periods']} periods, {result['failed_batches']} failed batches "
              f"({result['elapsed_seconds']}s)")
    except Exception as e:
        print(f"✗ Refresh failed: {e}", file=sys.stderr)
        sys.exit(1)
