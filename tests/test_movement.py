"""
Unit tests for tier movement between two periods.
"""
from dataclasses import dataclass

import pytest

from tier_engine.scoring.movement import (
    MovementType,
    calculate_tier_movement,
    duplicate_keys,
    movement_matrix,
    movement_summary,
)


@dataclass
class _Customer:
    userkey: str
    line: str
    tier: int
    score: float = 0.0


def _scenario():
    previous = [
        _Customer("a-1-L1", "L1", 3, 50.0),
        _Customer("b-2-L1", "L1", 2, 70.0),
        _Customer("c-3-L1", "L1", 5, 30.0),
        _Customer("d-4-L1", "L1", 6, 20.0),     # churns
    ]
    current = [
        _Customer("a-1-L1", "L1", 1, 90.0),     # upgrade
        _Customer("b-2-L1", "L1", 4, 45.5),     # downgrade
        _Customer("c-3-L1", "L1", 5, 31.0),     # stable
        _Customer("e-5-L1", "L1", 7, 5.0),      # new
    ]
    return calculate_tier_movement(current, previous)


class TestMovement:

    def test_movement_types(self):
        by_key = {m.userkey: m for m in _scenario()}
        assert by_key["a-1-L1"].movement_type == MovementType.UPGRADE
        assert by_key["a-1-L1"].tier_change == 2
        assert by_key["b-2-L1"].movement_type == MovementType.DOWNGRADE
        assert by_key["b-2-L1"].tier_change == -2
        assert by_key["b-2-L1"].score_change == -24.5
        assert by_key["c-3-L1"].movement_type == MovementType.STABLE
        assert by_key["d-4-L1"].movement_type == MovementType.CHURNED
        assert by_key["d-4-L1"].to_tier is None
        assert by_key["e-5-L1"].movement_type == MovementType.NEW
        assert by_key["e-5-L1"].from_tier is None

    def test_same_userkey_different_line_is_a_different_customer(self):
        movements = calculate_tier_movement(
            [_Customer("a-1-L1", "L2", 1)],
            [_Customer("a-1-L1", "L1", 1)],
        )
        assert sorted(m.movement_type for m in movements) == [MovementType.CHURNED, MovementType.NEW]

    def test_summary(self):
        s = movement_summary(_scenario())
        assert s["total_upgrades"] == 1
        assert s["total_downgrades"] == 1
        assert s["total_stable"] == 1
        assert s["total_new"] == 1
        assert s["total_churned"] == 1
        assert s["total_customers"] == 3
        assert s["total_users"] == 5
        assert s["upgrades_percentage"] == 33.33
        assert s["upgrades_by_tier"] == {1: 1}
        assert s["downgrades_by_tier"] == {4: 1}

    def test_matrix_only_counts_continuing_customers(self):
        m = movement_matrix(_scenario())
        assert m["grand_total"] == 3
        assert m["tier_order"] == [1, 2, 3, 4, 5]
        assert m["matrix"][3][1] == 1
        assert m["matrix"][2][4] == 1
        assert m["matrix"][5][5] == 1
        assert m["total_out"][3] == 1
        assert m["total_in"][4] == 1

    def test_empty_periods(self):
        assert calculate_tier_movement([], []) == []
        assert movement_summary([])["stable_percentage"] == 0.0
        assert movement_matrix([])["grand_total"] == 0

    def test_duplicate_customer_rejected(self):
        twice = [_Customer("a-1-L1", "L1", 2), _Customer("a-1-L1", "L1", 3)]
        with pytest.raises(ValueError, match="current"):
            calculate_tier_movement(twice, [_Customer("a-1-L1", "L1", 4)])
        with pytest.raises(ValueError, match="previous"):
            calculate_tier_movement([_Customer("a-1-L1", "L1", 4)], twice)

    def test_duplicate_keys(self):
        customers = [
            _Customer("a-1-L1", "L1", 1), _Customer("a-1-L1", "L2", 1),
            _Customer("b-2-L1", "L1", 1), _Customer("b-2-L1", "L1", 5),
        ]
        assert duplicate_keys(customers) == [("b-2-L1", "L1")]
