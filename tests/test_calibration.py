"""
Unit tests for boundary calibration + tier assignment.
"""
import random

import pytest

from tier_engine.scoring.calibration import (
    CalibrationMethod,
    assign_tier,
    calibrate,
    classify_potential,
    tier_distribution,
    tier_label,
)


class TestQuantileCalibration:

    def test_seven_customers_one_per_tier(self):
        scores = [10, 20, 30, 40, 50, 60, 70]
        boundaries = calibrate(scores)
        assert boundaries == [20, 30, 40, 50, 60, 70]
        assert assign_tier(70, boundaries) == 1
        assert assign_tier(10, boundaries) == 7
        assert [assign_tier(s, boundaries) for s in scores] == [7, 6, 5, 4, 3, 2, 1]

    def test_equal_frequency_split(self):
        scores = list(range(1, 71))
        boundaries = calibrate(scores)
        assert boundaries == [11, 21, 31, 41, 51, 61]
        tiers = [assign_tier(s, boundaries) for s in scores]
        assert all(tiers.count(t) == 10 for t in range(1, 8))

    def test_input_order_does_not_matter(self):
        scores = [5.5, 88.1, 12.0, 40.2, 40.2, 73.9, 19.4, 61.0, 2.2]
        shuffled = list(scores)
        random.Random(3).shuffle(shuffled)
        assert calibrate(scores) == calibrate(shuffled)

    def test_non_finite_scores_ignored(self):
        assert calibrate([10, float("nan"), 20, float("inf")]) == calibrate([10, 20])


class TestDegenerateCohorts:

    def test_empty_cohort(self):
        assert calibrate([]) == [0.0] * 6

    def test_single_customer_is_tier_one(self):
        boundaries = calibrate([42.0])
        assert boundaries == [42.0] * 6
        assert assign_tier(42.0, boundaries) == 1

    def test_identical_scores_share_a_tier(self):
        boundaries = calibrate([25.0] * 10)
        assert {assign_tier(25.0, boundaries)} == {1}


class TestTargetDistribution:

    def test_business_split(self):
        scores = list(range(1, 101))
        boundaries = calibrate(scores, CalibrationMethod.TARGET_DISTRIBUTION)
        assert boundaries == [6, 21, 46, 71, 86, 96]

        dist = tier_distribution([assign_tier(s, boundaries) for s in scores])
        assert [dist[t]["count"] for t in range(1, 8)] == [5, 10, 15, 25, 25, 15, 5]

    def test_custom_shares(self):
        scores = list(range(1, 71))
        equal = [1 / 7] * 7
        assert calibrate(scores, CalibrationMethod.TARGET_DISTRIBUTION, equal) == calibrate(scores)

    def test_wrong_share_count_rejected(self):
        with pytest.raises(ValueError):
            calibrate([1, 2, 3], CalibrationMethod.TARGET_DISTRIBUTION, [0.5, 0.5])


class TestFixedThresholds:

    def test_standard_min_scores(self):
        assert calibrate([1, 2, 3], CalibrationMethod.FIXED_THRESHOLDS) == [15, 25, 40, 65, 75, 95]

    def test_assignment_against_standard_scores(self):
        b = calibrate([], CalibrationMethod.FIXED_THRESHOLDS)
        assert assign_tier(95, b) == 1
        assert assign_tier(94.99, b) == 2
        assert assign_tier(40, b) == 4
        assert assign_tier(0, b) == 7


class TestInvariants:

    def test_boundaries_non_decreasing_and_tiers_monotonic(self):
        rng = random.Random(11)
        for method in (CalibrationMethod.QUANTILE, CalibrationMethod.TARGET_DISTRIBUTION):
            for n in (1, 2, 6, 7, 13, 100, 257):
                scores = [round(rng.uniform(0, 100), 2) for _ in range(n)]
                b = calibrate(scores, method)
                assert len(b) == 6
                assert b == sorted(b)

                ordered = sorted(scores)
                tiers = [assign_tier(s, b) for s in ordered]
                assert all(1 <= t <= 7 for t in tiers)
                assert tiers == sorted(tiers, reverse=True)

    def test_every_score_gets_a_tier(self):
        b = [20, 30, 40, 50, 60, 70]
        for s in (-1e9, 0, 19.999, 20, 55, 70, 1e9):
            assert 1 <= assign_tier(s, b) <= 7


class TestLabels:

    def test_tier_names_and_groups(self):
        assert tier_label(1).tier_name == "Super VIP"
        assert tier_label(1).tier_group == "High Value"
        assert tier_label(4).tier_group == "Medium Value"
        assert tier_label(7).tier_name == "Regular"
        assert tier_label(7).tier_group == "Low Value"

    def test_potential_tiers(self):
        assert classify_potential(50) == "P2"
        assert classify_potential(49.99) == "P1"
        assert classify_potential(30) == "P1"
        assert classify_potential(29.99) == "ND_P"
        assert classify_potential(0) == "ND_P"

    def test_distribution_zero_filled(self):
        dist = tier_distribution([1, 1, 7, 4])
        assert sorted(dist) == [1, 2, 3, 4, 5, 6, 7]
        assert dist[1]["count"] == 2
        assert dist[1]["percentage"] == 50.0
        assert dist[2]["count"] == 0

    def test_distribution_empty(self):
        dist = tier_distribution([])
        assert all(d["percentage"] == 0.0 for d in dist.values())
