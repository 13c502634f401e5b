"""
tests/test_scoring.py — Suspicion Fusion Tests
===============================================

Weighted fusion, half-up rounding, clamping, and the component
calculators that feed it.
"""

from __future__ import annotations

import pytest

from vigil.engine.scoring import (
    Recommendation,
    SuspicionInputs,
    calculate_account_factor,
    calculate_behavioral_score,
    calculate_rate_limit_score,
    calculate_social_signal,
    clamp,
    compute_suspicion,
    recommendation_for,
    social_ratio,
)
from vigil.engine.sessions import SequenceResult, SessionResult


class TestComputeSuspicion:
    def test_timing_only(self):
        """Only the timing weight applies: 100 × 0.25."""
        result = compute_suspicion(SuspicionInputs(timing_score=100))
        assert result.total_score == 25
        assert result.timing_score == 100
        assert result.behavioral_score == 0

    def test_all_signals(self):
        result = compute_suspicion(SuspicionInputs(
            timing_score=100,
            behavioral_score=80,
            rate_limit_score=60,
            social_score=100,
            account_score=100,
        ))
        # 25 + 20 + 12 + 15 + 15
        assert result.total_score == 87

    def test_all_zero(self):
        result = compute_suspicion(SuspicionInputs())
        assert result.total_score == 0

    def test_all_max(self):
        result = compute_suspicion(SuspicionInputs(100, 100, 100, 100, 100))
        assert result.total_score == 100

    def test_components_are_clamped(self):
        result = compute_suspicion(SuspicionInputs(
            timing_score=150, behavioral_score=-20,
        ))
        assert result.timing_score == 100
        assert result.behavioral_score == 0
        assert 0 <= result.total_score <= 100

    def test_rounds_half_up(self):
        """12.5 rounds to 13, not to the even neighbour."""
        result = compute_suspicion(SuspicionInputs(timing_score=50))
        assert result.total_score == 13

    def test_breakdown_keeps_every_component(self):
        result = compute_suspicion(SuspicionInputs(10, 20, 30, 40, 50))
        assert result.to_dict() == {
            "total_score": 27,   # 2.5 + 5 + 6 + 6 + 7.5
            "timing_score": 10,
            "behavioral_score": 20,
            "social_score": 40,
            "account_score": 50,
            "rate_limit_score": 30,
        }


class TestClamp:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(-5, 0), (0, 0), (0.5, 1), (49.4, 49), (49.5, 50), (100, 100), (250, 100)],
    )
    def test_clamp(self, value, expected):
        assert clamp(value) == expected


class TestRecommendation:
    @pytest.mark.parametrize(
        ("total", "expected"),
        [
            (0, Recommendation.ALLOW),
            (49, Recommendation.ALLOW),
            (50, Recommendation.MONITOR),
            (69, Recommendation.MONITOR),
            (70, Recommendation.CHALLENGE),
            (84, Recommendation.CHALLENGE),
            (85, Recommendation.BAN),
            (100, Recommendation.BAN),
        ],
    )
    def test_thresholds(self, total, expected):
        assert recommendation_for(total) is expected


class TestSocialSignal:
    @pytest.mark.parametrize(
        ("messages", "commands", "expected"),
        [
            (0, 0, 100),     # no activity at all
            (5, 95, 100),    # 95% commands
            (10, 90, 60),    # exactly 90% is not > 0.9
            (20, 80, 60),
            (40, 60, 30),
            (50, 50, 0),
            (90, 10, 0),
        ],
    )
    def test_tiers(self, messages, commands, expected):
        assert calculate_social_signal(messages, commands) == expected

    def test_social_ratio(self):
        assert social_ratio(0, 0) == 0.0
        assert social_ratio(25, 75) == pytest.approx(0.25)


class TestAccountFactor:
    @pytest.mark.parametrize(
        ("age", "avatar", "messages", "expected"),
        [
            (3, False, 0, 100),     # 50 + 20 + 30
            (10, True, 5, 40),      # 25 + 15
            (60, True, 100, 10),
            (365, True, 10, 0),
            (365, True, 9, 15),
            (365, False, 500, 20),
        ],
    )
    def test_buckets(self, age, avatar, messages, expected):
        assert calculate_account_factor(age, avatar, messages) == expected


class TestRateLimitScore:
    @pytest.mark.parametrize(
        ("violations", "expected"),
        [(0, 0), (1, 15), (6, 90), (7, 100), (100, 100)],
    )
    def test_fifteen_points_each(self, violations, expected):
        assert calculate_rate_limit_score(violations) == expected


class TestBehavioralScore:
    def _bot_session(self) -> SessionResult:
        return SessionResult(
            session_breaks=0,
            has_sleep_pattern=False,
            suspicion_score=45,
            reasons=["No natural daily breaks detected", "No sleep pattern detected"],
        )

    def test_everything_suspicious_caps_at_100(self):
        seq = SequenceResult(
            top_sequence="work-work-work",
            frequency=10,
            repetition_rate=1.0,
            is_suspicious=True,
            reason="Highly repetitive command sequences (100% same pattern)",
        )
        result = calculate_behavioral_score(self._bot_session(), seq, 0.05)
        assert result.score == 100
        assert result.has_repetitive_sequences is True
        assert result.has_natural_breaks is False
        assert "Low social interaction (5%)" in result.reasons
        assert len(result.reasons) == 4

    def test_social_ratio_at_threshold_is_not_penalised(self):
        result = calculate_behavioral_score(SessionResult(), SequenceResult(), 0.1)
        assert result.score == 0
        assert result.reasons == []

    def test_session_only(self):
        result = calculate_behavioral_score(self._bot_session(), SequenceResult(), 0.5)
        assert result.score == 45
