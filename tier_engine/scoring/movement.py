"""
Tier movement between two periods.

Customers are matched on (userkey, line):
  NEW        only in the current period
  CHURNED    only in the previous period
  UPGRADE    tier number went down (tier 1 is best)
  DOWNGRADE  tier number went up
  STABLE     same tier
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol


class MovementType(str, Enum):
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"
    STABLE = "STABLE"
    NEW = "NEW"
    CHURNED = "CHURNED"


class TieredCustomer(Protocol):
    userkey: str
    line: str
    tier: int
    score: float


@dataclass(frozen=True)
class TierMovement:
    userkey: str
    line: str
    movement_type: MovementType
    from_tier: Optional[int]
    to_tier: Optional[int]
    tier_change: int      # positive = upgrade
    score_change: float


def duplicate_keys(customers: Iterable[TieredCustomer]) -> list[tuple[str, str]]:
    """(userkey, line) pairs that appear more than once, sorted."""
    seen: set[tuple[str, str]] = set()
    dupes: set[tuple[str, str]] = set()
    for c in customers:
        key = (c.userkey, c.line)
        if key in seen:
            dupes.add(key)
        seen.add(key)
    return sorted(dupes)


def calculate_tier_movement(
    current: Iterable[TieredCustomer],
    previous: Iterable[TieredCustomer],
) -> list[TierMovement]:
    current = list(current)
    previous = list(previous)
    for label, customers in (("current", current), ("previous", previous)):
        duplicates = duplicate_keys(customers)
        if duplicates:
            raise ValueError(f"Duplicate (userkey, line) in {label} period: {duplicates}")

    prev_map = {(p.userkey, p.line): p for p in previous}
    movements: list[TierMovement] = []

    for cur in current:
        prev = prev_map.pop((cur.userkey, cur.line), None)
        if prev is None:
            movements.append(TierMovement(
                cur.userkey, cur.line, MovementType.NEW, None, cur.tier, 0, 0.0,
            ))
            continue

        tier_change = prev.tier - cur.tier
        if tier_change > 0:
            movement_type = MovementType.UPGRADE
        elif tier_change < 0:
            movement_type = MovementType.DOWNGRADE
        else:
            movement_type = MovementType.STABLE

        movements.append(TierMovement(
            cur.userkey, cur.line, movement_type, prev.tier, cur.tier,
            tier_change, round(cur.score - prev.score, 4),
        ))

    for prev in prev_map.values():
        movements.append(TierMovement(
            prev.userkey, prev.line, MovementType.CHURNED, prev.tier, None, 0, 0.0,
        ))

    return movements


def movement_summary(movements: list[TierMovement]) -> dict:
    counts = {t: 0 for t in MovementType}
    upgrades_by_tier: dict[int, int] = {}
    downgrades_by_tier: dict[int, int] = {}

    for m in movements:
        counts[m.movement_type] += 1
        if m.movement_type == MovementType.UPGRADE and m.to_tier:
            upgrades_by_tier[m.to_tier] = upgrades_by_tier.get(m.to_tier, 0) + 1
        elif m.movement_type == MovementType.DOWNGRADE and m.to_tier:
            downgrades_by_tier[m.to_tier] = downgrades_by_tier.get(m.to_tier, 0) + 1

    # Percentages are over continuing customers only (NEW / CHURNED excluded)
    continuing = counts[MovementType.UPGRADE] + counts[MovementType.DOWNGRADE] + counts[MovementType.STABLE]

    def pct(n: int) -> float:
        return round(n / continuing * 100, 2) if continuing else 0.0

    return {
        "total_upgrades": counts[MovementType.UPGRADE],
        "total_downgrades": counts[MovementType.DOWNGRADE],
        "total_stable": counts[MovementType.STABLE],
        "total_new": counts[MovementType.NEW],
        "total_churned": counts[MovementType.CHURNED],
        "total_customers": continuing,
        "total_users": len(movements),
        "upgrades_by_tier": upgrades_by_tier,
        "downgrades_by_tier": downgrades_by_tier,
        "upgrades_percentage": pct(counts[MovementType.UPGRADE]),
        "downgrades_percentage": pct(counts[MovementType.DOWNGRADE]),
        "stable_percentage": pct(counts[MovementType.STABLE]),
    }


def movement_matrix(movements: list[TierMovement]) -> dict:
    """from_tier → to_tier counts over customers present in both periods."""
    pairs = [(m.from_tier, m.to_tier) for m in movements
             if m.from_tier is not None and m.to_tier is not None]
    tier_order = sorted({t for pair in pairs for t in pair})

    matrix = {f: {t: 0 for t in tier_order} for f in tier_order}
    total_out = {t: 0 for t in tier_order}
    total_in = {t: 0 for t in tier_order}

    for from_tier, to_tier in pairs:
        matrix[from_tier][to_tier] += 1
        total_out[from_tier] += 1
        total_in[to_tier] += 1

    return {
        "matrix": matrix,
        "total_out": total_out,
        "total_in": total_in,
        "tier_order": tier_order,
        "grand_total": len(pairs),
    }
