"""
vigil.engine.timing — Command timing regularity analysis
=========================================================

Pure functions, no DB I/O.  Humans are noisy: the spread of their gaps
between cooldown-gated commands is several percent of the mean.  Scripts are
not.  The coefficient of variation (CV = stddev / mean × 100) measures that
regularity independently of the cooldown length.

CV tiers (first match wins):

    cv < 0.5   extreme   suspicious   likely automated
    cv < 1     high      suspicious
    cv < 2     medium    suspicious
    cv < 5     low       monitor only
    otherwise  none

Secondary checks: cooldown sniping (commands fired right as the cooldown
expires) and z-score consistency (no natural outliers).
"""

from __future__ import annotations

import enum
import logging
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field

from vigil.constants import (
    CV_EXTREME_BELOW,
    CV_HIGH_BELOW,
    CV_LOW_BELOW,
    CV_MEDIUM_BELOW,
    SNIPE_SUSPICIOUS_RATE,
    SNIPE_WINDOW_SECONDS,
    Z_CONSISTENCY_RATE,
    Z_NEAR_ZERO,
    Z_OUTLIER,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "insufficient data"


class SuspicionLevel(enum.StrEnum):
    """Timing verdict tiers, mildest first."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TimingResult:
    mean: float = 0.0
    stddev: float = 0.0
    cv: float = 0.0
    is_suspicious: bool = False
    level: SuspicionLevel = SuspicionLevel.NONE
    reason: str = INSUFFICIENT_DATA


@dataclass(frozen=True, slots=True)
class SnipeResult:
    snipe_rate: float = 0.0
    is_suspicious: bool = False
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ZScoreResult:
    z_scores: list[float] = field(default_factory=list)
    has_unnatural_consistency: bool = False
    has_natural_outliers: bool = False
    reason: str | None = None


# ---------------------------------------------------------------------------
# Coefficient of variation
# ---------------------------------------------------------------------------
def analyze_timing(intervals: Sequence[float]) -> TimingResult:
    """Classify the regularity of *intervals* (seconds, oldest-first).

    Uses the population mean and standard deviation.  Fewer than two
    intervals, or a zero mean, cannot be classified and come back as a
    neutral, non-suspicious result.
    """
    if len(intervals) < 2:
        return TimingResult()

    mean = statistics.fmean(intervals)
    stddev = statistics.pstdev(intervals)
    if mean == 0:
        return TimingResult(
            mean=0.0,
            stddev=stddev,
            reason="zero mean interval, cannot compute variation",
        )

    cv = stddev / mean * 100

    if cv < CV_EXTREME_BELOW:
        level = SuspicionLevel.EXTREME
        reason = f"Extremely consistent timing (CV: {cv:.2f}%), likely automated"
    elif cv < CV_HIGH_BELOW:
        level = SuspicionLevel.HIGH
        reason = f"Very consistent timing (CV: {cv:.2f}%), suspicious"
    elif cv < CV_MEDIUM_BELOW:
        level = SuspicionLevel.MEDIUM
        reason = f"Consistent timing (CV: {cv:.2f}%), warrants investigation"
    elif cv < CV_LOW_BELOW:
        level = SuspicionLevel.LOW
        reason = f"Slightly consistent timing (CV: {cv:.2f}%), monitor"
    else:
        level = SuspicionLevel.NONE
        reason = f"Normal human variation (CV: {cv:.2f}%)"

    suspicious = level in (
        SuspicionLevel.EXTREME,
        SuspicionLevel.HIGH,
        SuspicionLevel.MEDIUM,
    )
    return TimingResult(
        mean=mean,
        stddev=stddev,
        cv=cv,
        is_suspicious=suspicious,
        level=level,
        reason=reason,
    )


def timing_suspicion_score(result: TimingResult) -> int:
    """Map a timing verdict onto the 0–100 suspicion axis.

    The one shared mapping used wherever a timing component is fused:
    extreme → 100, high/medium → 50, everything else → 0.  This matches
    ``cv < 0.5 → 100, cv < 2 → 50, else 0`` on the CV scale.
    """
    if result.level is SuspicionLevel.EXTREME:
        return 100
    if result.level in (SuspicionLevel.HIGH, SuspicionLevel.MEDIUM):
        return 50
    return 0


# ---------------------------------------------------------------------------
# Cooldown sniping
# ---------------------------------------------------------------------------
def check_snipe(
    intervals: Sequence[float], expected_cooldown_sec: float
) -> SnipeResult:
    """Fraction of *intervals* landing within 5 s of the cooldown.

    More than 70% of commands fired at the cooldown boundary is flagged.
    """
    if not intervals:
        return SnipeResult()

    snipes = sum(
        1 for gap in intervals
        if abs(gap - expected_cooldown_sec) <= SNIPE_WINDOW_SECONDS
    )
    rate = snipes / len(intervals)
    suspicious = rate > SNIPE_SUSPICIOUS_RATE
    return SnipeResult(
        snipe_rate=rate,
        is_suspicious=suspicious,
        reason=(
            f"{rate * 100:.0f}% of commands executed at exact cooldown, likely automated"
            if suspicious
            else None
        ),
    )


# ---------------------------------------------------------------------------
# Z-score consistency
# ---------------------------------------------------------------------------
def calculate_z_scores(intervals: Sequence[float]) -> ZScoreResult:
    """Look for impossibly even spacing with no natural outliers.

    Humans occasionally produce a gap far from their norm (|z| > 3).  When
    more than 80% of |z| values sit below 0.5 and no outlier exists, the
    series is flagged.  A zero standard deviation counts as perfectly
    consistent.
    """
    if len(intervals) < 3:
        return ZScoreResult()

    mean = statistics.fmean(intervals)
    stddev = statistics.pstdev(intervals)
    if stddev == 0:
        z_scores = [0.0] * len(intervals)
    else:
        z_scores = [abs((gap - mean) / stddev) for gap in intervals]

    near_zero = sum(1 for z in z_scores if z < Z_NEAR_ZERO) / len(z_scores)
    outliers = any(z > Z_OUTLIER for z in z_scores)
    unnatural = near_zero > Z_CONSISTENCY_RATE and not outliers
    return ZScoreResult(
        z_scores=z_scores,
        has_unnatural_consistency=unnatural,
        has_natural_outliers=outliers,
        reason=(
            "Impossibly consistent timing with no natural variation, likely automated"
            if unnatural
            else None
        ),
    )
