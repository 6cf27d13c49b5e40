"""
Row adapter + per-customer period aggregation.

Storage rows come in several shapes (tier_*_v1 tables, raw member reports,
API payloads): `dc` vs `deposit_cases` vs `total_deposit_cases`, month as a
name or a number, line missing but embedded in the userkey, and so on.
`normalize_row` maps every shape onto one canonical row before anything is
scored; `build_cohorts` then groups and sums them per customer per cohort.

Derived metrics are always recomputed from the summed raw metrics of the
aggregate (never averaged from monthly derived values):

  ATV       = deposit_amount / deposit_cases            (0 if no cases)
  Win Rate  = ggr / deposit_amount * 100                (0 if amount <= 0)
  PF        = depends on PurchaseFrequencyMode:
                PER_ACTIVE_DAY     deposit_cases / active_days
                PER_CUSTOMER       deposit_cases (active member = 1)
                PER_COHORT_MEMBER  deposit_cases / depositing members in cohort
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

# Column aliases, first hit wins
USERKEY_KEYS = ("userkey", "user_key", "customer_id")
LINE_KEYS = ("line", "brand")
DEPOSIT_AMOUNT_KEYS = ("total_deposit_amount", "deposit_amount", "da")
DEPOSIT_CASES_KEYS = ("total_deposit_cases", "deposit_cases", "dc")
WITHDRAW_AMOUNT_KEYS = ("total_withdraw_amount", "withdraw_amount", "wa")
WITHDRAW_CASES_KEYS = ("total_withdraw_cases", "withdraw_cases", "wc")
GGR_KEYS = ("total_ggr", "ggr", "total_net_profit", "net_profit")
ACTIVE_DAYS_KEYS = ("active_days", "days_active")


class Granularity(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class PurchaseFrequencyMode(str, Enum):
    PER_ACTIVE_DAY = "PER_ACTIVE_DAY"
    PER_CUSTOMER = "PER_CUSTOMER"
    PER_COHORT_MEMBER = "PER_COHORT_MEMBER"


class MalformedRowError(ValueError):
    """Row cannot be attributed to a customer / line / period."""


@dataclass(frozen=True)
class NormalizedRow:
    userkey: str
    line: str
    year: int
    month: int
    deposit_amount: float
    deposit_cases: float
    withdraw_amount: float
    withdraw_cases: float
    ggr: float
    active_days: float
    unique_code: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def quarter(self) -> int:
        return (self.month - 1) // 3 + 1


@dataclass
class CustomerPeriodAggregate:
    userkey: str
    line: str
    year: int
    month: Optional[int]
    quarter: Optional[int]
    period_key: str
    deposit_amount: float
    deposit_cases: float
    withdraw_amount: float
    withdraw_cases: float
    ggr: float
    active_days: float
    months_active: int = 1
    purchase_frequency: float = 0.0
    unique_code: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def avg_transaction_value(self) -> float:
        if self.deposit_cases <= 0:
            return 0.0
        return self.deposit_amount / self.deposit_cases

    @property
    def win_rate(self) -> float:
        if self.deposit_amount <= 0:
            return 0.0
        return self.ggr / self.deposit_amount * 100

    @property
    def month_name(self) -> Optional[str]:
        return MONTH_NAMES[self.month - 1] if self.month else None


@dataclass
class Cohort:
    cohort_key: str
    period_key: str
    line: Optional[str]
    members: list[CustomerPeriodAggregate] = field(default_factory=list)


@dataclass
class AggregationResult:
    cohorts: list[Cohort]
    rows_read: int
    rows_skipped: int


# ─── Field coercion ───────────────────────────────────────────────

def _first(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    """Optional labels (unique_code, user_name) arrive as str or number."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> float:
    """Unparseable or non-finite values carry no signal → 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_month(value: Any) -> Optional[int]:
    """1-12 from an int, a numeric string, a month name or a 3-letter abbreviation."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        month = int(value)
        return month if 1 <= month <= 12 else None

    text = str(value).strip()
    if text.isdigit():
        return parse_month(int(text))
    for idx, name in enumerate(MONTH_NAMES, start=1):
        if text.lower() in (name.lower(), name[:3].lower()):
            return idx
    return None


def period_key(granularity: Granularity, year: int, month: Optional[int] = None,
               quarter: Optional[int] = None) -> str:
    if granularity == Granularity.MONTHLY:
        return f"{year}-{month:02d}"
    if granularity == Granularity.QUARTERLY:
        return f"{year}-Q{quarter}"
    return str(year)


def normalize_row(row: Mapping[str, Any]) -> NormalizedRow:
    userkey = _first(row, USERKEY_KEYS)
    if userkey is None or not str(userkey).strip():
        raise MalformedRowError("missing customer identity")
    userkey = str(userkey).strip()

    line = _first(row, LINE_KEYS)
    if line is None:
        # userkey format: prefix-unique_code-line
        parts = userkey.split("-")
        line = parts[2] if len(parts) >= 3 else None
    if line is None or not str(line).strip():
        raise MalformedRowError(f"missing line for userkey {userkey}")

    try:
        year = int(row.get("year"))
    except (TypeError, ValueError, OverflowError):
        raise MalformedRowError(f"missing or invalid year for userkey {userkey}")

    month = parse_month(row.get("month"))
    if month is None:
        raise MalformedRowError(f"missing or invalid month for userkey {userkey}")

    deposit_amount = _number(_first(row, DEPOSIT_AMOUNT_KEYS))
    withdraw_amount = _number(_first(row, WITHDRAW_AMOUNT_KEYS))
    ggr_value = _first(row, GGR_KEYS)
    ggr = _number(ggr_value) if ggr_value is not None else deposit_amount - withdraw_amount

    return NormalizedRow(
        userkey=userkey,
        line=str(line).strip(),
        year=year,
        month=month,
        deposit_amount=deposit_amount,
        deposit_cases=_number(_first(row, DEPOSIT_CASES_KEYS)),
        withdraw_amount=withdraw_amount,
        withdraw_cases=_number(_first(row, WITHDRAW_CASES_KEYS)),
        ggr=ggr,
        active_days=_number(_first(row, ACTIVE_DAYS_KEYS)),
        unique_code=_text(row.get("unique_code")),
        user_name=_text(row.get("user_name")),
    )


# ─── Aggregation ──────────────────────────────────────────────────

def _purchase_frequency(agg: CustomerPeriodAggregate, mode: PurchaseFrequencyMode,
                        cohort_members: int) -> float:
    if mode == PurchaseFrequencyMode.PER_CUSTOMER:
        return agg.deposit_cases
    if mode == PurchaseFrequencyMode.PER_COHORT_MEMBER:
        return agg.deposit_cases / cohort_members if cohort_members > 0 else 0.0
    return agg.deposit_cases / agg.active_days if agg.active_days > 0 else 0.0


def build_cohorts(
    rows: Iterable[Mapping[str, Any]],
    granularity: Granularity = Granularity.MONTHLY,
    pf_mode: PurchaseFrequencyMode = PurchaseFrequencyMode.PER_ACTIVE_DAY,
    split_by_line: bool = False,
) -> AggregationResult:
    """
    Normalize, group and sum rows into per-customer aggregates per cohort.

    A cohort is one period (year+month / year+quarter / year), or one
    period+line when split_by_line is set. Customers are keyed by
    (userkey, line). Malformed rows are skipped and counted.
    """
    granularity = Granularity(granularity)
    pf_mode = PurchaseFrequencyMode(pf_mode)

    buckets: dict[tuple, list[NormalizedRow]] = defaultdict(list)
    rows_read = 0
    rows_skipped = 0

    for row in rows:
        rows_read += 1
        try:
            norm = normalize_row(row)
        except MalformedRowError as e:
            rows_skipped += 1
            logger.warning("malformed_row_skipped", reason=str(e), row_index=rows_read - 1)
            continue

        month = norm.month if granularity == Granularity.MONTHLY else None
        quarter = norm.quarter if granularity == Granularity.QUARTERLY else None
        pkey = period_key(granularity, norm.year, month, quarter)
        buckets[(pkey, norm.year, month, quarter, norm.userkey, norm.line)].append(norm)

    cohorts: dict[str, Cohort] = {}
    for (pkey, year, month, quarter, userkey, line) in sorted(buckets, key=lambda k: (k[0], k[4], k[5])):
        members = buckets[(pkey, year, month, quarter, userkey, line)]
        # fsum: exact sums, independent of row arrival order
        agg = CustomerPeriodAggregate(
            userkey=userkey,
            line=line,
            year=year,
            month=month,
            quarter=quarter,
            period_key=pkey,
            deposit_amount=math.fsum(r.deposit_amount for r in members),
            deposit_cases=math.fsum(r.deposit_cases for r in members),
            withdraw_amount=math.fsum(r.withdraw_amount for r in members),
            withdraw_cases=math.fsum(r.withdraw_cases for r in members),
            ggr=math.fsum(r.ggr for r in members),
            active_days=math.fsum(r.active_days for r in members),
            months_active=len({r.month for r in members}),
            unique_code=min((r.unique_code for r in members if r.unique_code), default=None),
            user_name=min((r.user_name for r in members if r.user_name), default=None),
        )

        cohort_key = f"{pkey}|{line}" if split_by_line else pkey
        cohort = cohorts.get(cohort_key)
        if cohort is None:
            cohort = Cohort(cohort_key=cohort_key, period_key=pkey,
                            line=line if split_by_line else None)
            cohorts[cohort_key] = cohort
        cohort.members.append(agg)

    for cohort in cohorts.values():
        depositing = sum(1 for m in cohort.members if m.deposit_cases > 0)
        for member in cohort.members:
            member.purchase_frequency = _purchase_frequency(member, pf_mode, depositing)

    return AggregationResult(
        cohorts=[cohorts[k] for k in sorted(cohorts)],
        rows_read=rows_read,
        rows_skipped=rows_skipped,
    )
