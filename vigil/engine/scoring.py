"""
vigil.engine.scoring — Multi-signal suspicion fusion
=====================================================

Pure calculation, no DB I/O.  Five independently sourced signals, each on a
0–100 scale, are blended into one suspicion score:

    timing      0.25   CV tier of recent command gaps
    behavioral  0.25   session rhythm + sequence repetition + social ratio
    rate_limit  0.20   cooldown violations in the last 24 h
    social      0.15   commands vs. chat messages
    account     0.15   account age, avatar, message history

Callers resolve a missing signal to 0 before fusing; "unknown" is never
passed through.
"""

from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass

from vigil.constants import (
    LOW_SOCIAL_PENALTY,
    LOW_SOCIAL_RATIO,
    RATE_LIMIT_POINTS_PER_VIOLATION,
    RECOMMEND_BAN_AT,
    RECOMMEND_CHALLENGE_AT,
    RECOMMEND_MONITOR_AT,
    REPETITIVE_SEQUENCE_PENALTY,
    SUSPICION_WEIGHTS,
)
from vigil.engine.sessions import SequenceResult, SessionResult


class Recommendation(enum.StrEnum):
    """Presentation-facing verdict derived from the total score alone."""
    ALLOW = "allow"
    MONITOR = "monitor"
    CHALLENGE = "challenge"
    BAN = "ban"


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    """Round half-up to an int and pin it inside ``[low, high]``."""
    return max(low, min(high, math.floor(value + 0.5)))


# ---------------------------------------------------------------------------
# Inputs / output
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SuspicionInputs:
    timing_score: float = 0
    behavioral_score: float = 0
    rate_limit_score: float = 0
    social_score: float = 0
    account_score: float = 0


@dataclass(frozen=True, slots=True)
class SuspicionScoreBreakdown:
    total_score: int
    timing_score: int
    behavioral_score: int
    social_score: int
    account_score: int
    rate_limit_score: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class BehavioralScore:
    score: int
    has_natural_breaks: bool
    has_repetitive_sequences: bool
    social_ratio: float
    reasons: list[str]


# ---------------------------------------------------------------------------
# Component calculators
# ---------------------------------------------------------------------------
def calculate_social_signal(message_count: int, command_count: int) -> int:
    """Score how command-heavy a user's activity is.

    No activity at all is maximally suspicious.
    """
    total = message_count + command_count
    if total == 0:
        return 100

    ratio = command_count / total
    if ratio > 0.9:
        return 100
    if ratio > 0.7:
        return 60
    if ratio > 0.5:
        return 30
    return 0


def calculate_account_factor(
    account_age_days: float, has_avatar: bool, message_count: int
) -> int:
    """Score account maturity: age (0–50), avatar (0–20), history (0–30)."""
    score = 0

    if account_age_days < 7:
        score += 50
    elif account_age_days < 30:
        score += 25
    elif account_age_days < 90:
        score += 10

    if not has_avatar:
        score += 20

    if message_count == 0:
        score += 30
    elif message_count < 10:
        score += 15

    return min(100, score)


def calculate_rate_limit_score(violation_count: int) -> int:
    """15 points per rate-limit violation in the window, capped at 100."""
    return min(100, max(0, violation_count) * RATE_LIMIT_POINTS_PER_VIOLATION)


def social_ratio(message_count: int, command_count: int) -> float:
    """Share of activity that is conversation rather than commands."""
    total = message_count + command_count
    return message_count / total if total > 0 else 0.0


def calculate_behavioral_score(
    session: SessionResult,
    sequence: SequenceResult,
    ratio: float,
) -> BehavioralScore:
    """Sum the behavioral penalties and cap at 100.

    ``session.suspicion_score`` + 30 for a repetitive command loop + 25 when
    less than 10% of activity is conversation.
    """
    score = session.suspicion_score
    reasons = list(session.reasons)

    if sequence.is_suspicious:
        score += REPETITIVE_SEQUENCE_PENALTY
        if sequence.reason:
            reasons.append(sequence.reason)

    if ratio < LOW_SOCIAL_RATIO:
        score += LOW_SOCIAL_PENALTY
        reasons.append(f"Low social interaction ({ratio * 100:.0f}%)")

    return BehavioralScore(
        score=min(100, score),
        has_natural_breaks=session.has_sleep_pattern,
        has_repetitive_sequences=sequence.is_suspicious,
        social_ratio=ratio,
        reasons=reasons,
    )


# ---------------------------------------------------------------------------
# Fusion
# ---------------------------------------------------------------------------
def compute_suspicion(inputs: SuspicionInputs) -> SuspicionScoreBreakdown:
    """Blend the five component scores with fixed weights.

    The total is rounded half-up and clamped to [0, 100]; every component
    is clamped and returned alongside it for audit.
    """
    w = SUSPICION_WEIGHTS
    total = (
        inputs.timing_score * w["timing"]
        + inputs.behavioral_score * w["behavioral"]
        + inputs.rate_limit_score * w["rate_limit"]
        + inputs.social_score * w["social"]
        + inputs.account_score * w["account"]
    )
    return SuspicionScoreBreakdown(
        total_score=clamp(total),
        timing_score=clamp(inputs.timing_score),
        behavioral_score=clamp(inputs.behavioral_score),
        social_score=clamp(inputs.social_score),
        account_score=clamp(inputs.account_score),
        rate_limit_score=clamp(inputs.rate_limit_score),
    )


def recommendation_for(total_score: int) -> Recommendation:
    """Coarse verdict for display: ≥85 ban, ≥70 challenge, ≥50 monitor."""
    if total_score >= RECOMMEND_BAN_AT:
        return Recommendation.BAN
    if total_score >= RECOMMEND_CHALLENGE_AT:
        return Recommendation.CHALLENGE
    if total_score >= RECOMMEND_MONITOR_AT:
        return Recommendation.MONITOR
    return Recommendation.ALLOW
