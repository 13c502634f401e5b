"""
tests/test_timing.py — Timing Analyzer Tests
=============================================

Coefficient-of-variation tiers, cooldown sniping, z-score consistency and
the shared timing → suspicion mapping.
"""

from __future__ import annotations

import pytest

from vigil.engine.timing import (
    INSUFFICIENT_DATA,
    SuspicionLevel,
    TimingResult,
    analyze_timing,
    calculate_z_scores,
    check_snipe,
    timing_suspicion_score,
)


def _pair(mean: float, spread: float) -> list[float]:
    """Two intervals with population stddev == *spread*."""
    return [mean - spread, mean + spread]


class TestAnalyzeTiming:
    def test_empty_is_insufficient(self):
        result = analyze_timing([])
        assert result.is_suspicious is False
        assert result.reason == INSUFFICIENT_DATA
        assert result.level is SuspicionLevel.NONE

    def test_single_interval_is_insufficient(self):
        result = analyze_timing([3600])
        assert result.is_suspicious is False
        assert result.reason == INSUFFICIENT_DATA
        assert result.cv == 0

    def test_identical_intervals_are_extreme(self):
        """50 identical gaps → cv 0, the most bot-like series possible."""
        result = analyze_timing([3600.0] * 50)
        assert result.cv == 0
        assert result.mean == 3600
        assert result.level is SuspicionLevel.EXTREME
        assert result.is_suspicious is True
        assert "likely automated" in result.reason

    @pytest.mark.parametrize(
        ("spread", "level", "suspicious"),
        [
            (3, SuspicionLevel.EXTREME, True),    # cv 0.3
            (7, SuspicionLevel.HIGH, True),       # cv 0.7
            (15, SuspicionLevel.MEDIUM, True),    # cv 1.5
            (30, SuspicionLevel.LOW, False),      # cv 3.0
            (60, SuspicionLevel.NONE, False),     # cv 6.0
        ],
    )
    def test_cv_tiers(self, spread, level, suspicious):
        result = analyze_timing(_pair(1000, spread))
        assert result.cv == pytest.approx(spread / 10)
        assert result.level is level
        assert result.is_suspicious is suspicious

    def test_human_variation_is_not_suspicious(self):
        result = analyze_timing([100, 200, 3600, 45, 7200, 900])
        assert result.cv >= 5
        assert result.level is SuspicionLevel.NONE
        assert result.is_suspicious is False

    def test_population_stddev(self):
        result = analyze_timing([2, 4, 4, 4, 5, 5, 7, 9])
        assert result.mean == pytest.approx(5.0)
        assert result.stddev == pytest.approx(2.0)
        assert result.cv == pytest.approx(40.0)

    def test_zero_mean_is_not_classified(self):
        result = analyze_timing([0, 0, 0])
        assert result.cv == 0
        assert result.level is SuspicionLevel.NONE
        assert result.is_suspicious is False


class TestTimingSuspicionScore:
    @pytest.mark.parametrize(
        ("spread", "expected"),
        [(3, 100), (7, 50), (15, 50), (30, 0), (60, 0)],
    )
    def test_mapping_follows_level(self, spread, expected):
        assert timing_suspicion_score(analyze_timing(_pair(1000, spread))) == expected

    def test_insufficient_data_scores_zero(self):
        assert timing_suspicion_score(TimingResult()) == 0


class TestCheckSnipe:
    def test_eighty_percent_at_cooldown(self):
        intervals = [3595, 3605, 3600, 3601, 3599, 3597, 3603, 3600, 7200, 9000]
        result = check_snipe(intervals, 3600)
        assert result.snipe_rate == pytest.approx(0.8)
        assert result.is_suspicious is True
        assert result.reason is not None

    def test_seventy_percent_is_not_enough(self):
        intervals = [3600] * 7 + [7200] * 3
        result = check_snipe(intervals, 3600)
        assert result.snipe_rate == pytest.approx(0.7)
        assert result.is_suspicious is False
        assert result.reason is None

    def test_window_edges_are_inclusive(self):
        result = check_snipe([3595, 3605], 3600)
        assert result.snipe_rate == 1.0

    def test_just_outside_window(self):
        result = check_snipe([3594.9, 3605.1], 3600)
        assert result.snipe_rate == 0.0

    def test_empty_input(self):
        result = check_snipe([], 3600)
        assert result.snipe_rate == 0
        assert result.is_suspicious is False


class TestZScores:
    def test_needs_three_intervals(self):
        result = calculate_z_scores([3600, 3600])
        assert result.z_scores == []
        assert result.has_unnatural_consistency is False

    def test_zero_stddev_is_perfectly_consistent(self):
        result = calculate_z_scores([3600] * 10)
        assert result.z_scores == [0.0] * 10
        assert result.has_unnatural_consistency is True
        assert result.has_natural_outliers is False

    def test_outlier_clears_consistency_flag(self):
        result = calculate_z_scores([100] * 20 + [10000])
        assert result.has_natural_outliers is True
        assert result.has_unnatural_consistency is False

    def test_spread_series_is_natural(self):
        result = calculate_z_scores([60, 600, 1800, 3600, 7200, 120])
        assert result.has_unnatural_consistency is False
