"""
vigil.engine.sessions — Session rhythm and command sequence analysis
=====================================================================

Legitimate users sleep, work, and wander off.  Their command history shows
multi-hour gaps at least once a day.  A script running 24/7 does not, and
it tends to replay the same short command loop.

Pure functions, no DB I/O.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from vigil.constants import (
    MIN_SESSION_BREAKS,
    NO_BREAKS_PENALTY,
    NO_SLEEP_PENALTY,
    SEQUENCE_LENGTH,
    SEQUENCE_SUSPICIOUS_RATE,
    SESSION_BREAK_SECONDS,
    SLEEP_BREAK_SECONDS,
)
from vigil.engine.events import intervals_between


@dataclass(frozen=True, slots=True)
class SessionResult:
    session_breaks: int = 0
    longest_break_sec: float = 0.0
    avg_active_gap_sec: float = 0.0
    has_sleep_pattern: bool = False
    suspicion_score: int = 0
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SequenceResult:
    top_sequence: str = ""
    frequency: int = 0
    repetition_rate: float = 0.0
    is_suspicious: bool = False
    reason: str | None = None


def analyze_sessions(timestamps: Sequence[datetime]) -> SessionResult:
    """Score the daily rhythm of *timestamps* (any order).

    A gap over one hour is a session break; gaps under an hour are active
    play and are averaged.  A break over four hours is taken as sleep.
    Scoring is additive (``+25`` fewer than two breaks, ``+20`` no sleep);
    the fusion step caps the total.
    """
    gaps = intervals_between(timestamps)
    if not gaps:
        return SessionResult()

    session_breaks = sum(1 for gap in gaps if gap > SESSION_BREAK_SECONDS)
    longest_break = max(max(gaps), 0.0)
    active = [gap for gap in gaps if gap < SESSION_BREAK_SECONDS]
    avg_active = sum(active) / len(active) if active else 0.0
    has_sleep = longest_break > SLEEP_BREAK_SECONDS

    score = 0
    reasons: list[str] = []
    if session_breaks < MIN_SESSION_BREAKS:
        score += NO_BREAKS_PENALTY
        reasons.append("No natural daily breaks detected")
    if not has_sleep:
        score += NO_SLEEP_PENALTY
        reasons.append("No sleep pattern detected (longest break < 4 hours)")

    return SessionResult(
        session_breaks=session_breaks,
        longest_break_sec=longest_break,
        avg_active_gap_sec=avg_active,
        has_sleep_pattern=has_sleep,
        suspicion_score=score,
        reasons=reasons,
    )


def analyze_command_sequences(commands: Sequence[str]) -> SequenceResult:
    """Find the most repeated run of three consecutive commands.

    Windows overlap, so ``n`` commands give ``n - 2`` triads.  When one triad
    accounts for more than 70% of them, the history is flagged.
    """
    total = len(commands) - (SEQUENCE_LENGTH - 1)
    if total < 1:
        return SequenceResult()

    triads = Counter(
        "-".join(commands[i:i + SEQUENCE_LENGTH]) for i in range(total)
    )
    # most_common keeps first-seen order on ties
    top, frequency = triads.most_common(1)[0]
    rate = frequency / total
    suspicious = rate > SEQUENCE_SUSPICIOUS_RATE
    return SequenceResult(
        top_sequence=top,
        frequency=frequency,
        repetition_rate=rate,
        is_suspicious=suspicious,
        reason=(
            f"Highly repetitive command sequences ({rate * 100:.0f}% same pattern)"
            if suspicious
            else None
        ),
    )
