"""
vigil.constants — Shared Thresholds, Weights & Messages
========================================================

Single source of truth for the detection thresholds and enforcement ladder.
Import from here instead of duplicating numbers across analyzers and services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Timing analysis
# ---------------------------------------------------------------------------
# Coefficient-of-variation tiers, in percent (upper bounds, exclusive)
CV_EXTREME_BELOW = 0.5
CV_HIGH_BELOW = 1.0
CV_MEDIUM_BELOW = 2.0
CV_LOW_BELOW = 5.0

SNIPE_WINDOW_SECONDS = 5.0
SNIPE_SUSPICIOUS_RATE = 0.7

Z_NEAR_ZERO = 0.5
Z_OUTLIER = 3.0
Z_CONSISTENCY_RATE = 0.8

# ---------------------------------------------------------------------------
# Session / sequence analysis
# ---------------------------------------------------------------------------
SESSION_BREAK_SECONDS = 3600
SLEEP_BREAK_SECONDS = 14400
MIN_SESSION_BREAKS = 2
NO_BREAKS_PENALTY = 25
NO_SLEEP_PENALTY = 20

SEQUENCE_LENGTH = 3
SEQUENCE_SUSPICIOUS_RATE = 0.7
REPETITIVE_SEQUENCE_PENALTY = 30

LOW_SOCIAL_RATIO = 0.1
LOW_SOCIAL_PENALTY = 25

# ---------------------------------------------------------------------------
# Score fusion
# ---------------------------------------------------------------------------
SUSPICION_WEIGHTS: dict[str, float] = {
    "timing": 0.25,
    "behavioral": 0.25,
    "rate_limit": 0.20,
    "social": 0.15,
    "account": 0.15,
}

RATE_LIMIT_POINTS_PER_VIOLATION = 15

# Presentation-facing recommendation thresholds (total score, inclusive)
RECOMMEND_BAN_AT = 85
RECOMMEND_CHALLENGE_AT = 70
RECOMMEND_MONITOR_AT = 50

# ---------------------------------------------------------------------------
# Trust ledger
# ---------------------------------------------------------------------------
TRUST_MIN = 0
TRUST_MAX = 1000
TRUST_NEUTRAL = 500
TRUST_MAX_DELTA = 1000

# ---------------------------------------------------------------------------
# Enforcement ladder (suspicion score, exclusive upper bounds)
# ---------------------------------------------------------------------------
ENFORCE_NONE_BELOW = 30
ENFORCE_MONITOR_BELOW = 50
ENFORCE_SOFT_BELOW = 70
ENFORCE_CAPTCHA_BELOW = 85

HIGH_TRUST_ABOVE = 700
CAPTCHA_CHANCE_HIGH_TRUST = 0.10
CAPTCHA_CHANCE_DEFAULT = 0.20
SOFT_RATE_LIMIT_MULTIPLIER = 0.7
RESTRICT_DURATION_MS = 3_600_000

MESSAGE_RATE_LIMIT = "You're going a little fast, so rewards are slowed down for a while."
MESSAGE_BUTTON_CAPTCHA = "Quick verification required"
MESSAGE_IMAGE_CAPTCHA = "\U0001f6e1️ Security verification required to continue"
MESSAGE_RESTRICT = (
    "⚠️ Your account has been temporarily restricted pending review. "
    "Please contact moderators if you believe this is an error."
)
