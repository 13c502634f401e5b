"""
vigil.engine.enforcement — Progressive enforcement ladder
==========================================================

Maps a suspicion score (0–100) and a trust score (0–1000) onto a response:

    score < 30   none
    score < 50   monitor       (silent)
    score < 70   rate_limit ×0.7, or a button captcha by chance
                 (10% when trust > 700, else 20%)
    score < 85   image captcha
    otherwise    restrict for 1 hour

The one random branch draws from an injectable :class:`random.Random` so
tests can pin either outcome.  Never raises: inputs arrive pre-clamped.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from typing import Any

from vigil.constants import (
    CAPTCHA_CHANCE_DEFAULT,
    CAPTCHA_CHANCE_HIGH_TRUST,
    ENFORCE_CAPTCHA_BELOW,
    ENFORCE_MONITOR_BELOW,
    ENFORCE_NONE_BELOW,
    ENFORCE_SOFT_BELOW,
    HIGH_TRUST_ABOVE,
    MESSAGE_BUTTON_CAPTCHA,
    MESSAGE_IMAGE_CAPTCHA,
    MESSAGE_RATE_LIMIT,
    MESSAGE_RESTRICT,
    RESTRICT_DURATION_MS,
    SOFT_RATE_LIMIT_MULTIPLIER,
)


class ActionType(enum.StrEnum):
    NONE = "none"
    MONITOR = "monitor"
    RATE_LIMIT = "rate_limit"
    CAPTCHA = "captcha"
    RESTRICT = "restrict"


class CaptchaType(enum.StrEnum):
    BUTTON = "button"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class EnforcementAction:
    action: ActionType
    rate_limit_multiplier: float | None = None
    captcha_type: CaptchaType | None = None
    restrict_duration_ms: int | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize without the unset optional fields."""
        out: dict[str, Any] = {"action": self.action.value}
        if self.rate_limit_multiplier is not None:
            out["rate_limit_multiplier"] = self.rate_limit_multiplier
        if self.captcha_type is not None:
            out["captcha_type"] = self.captcha_type.value
        if self.restrict_duration_ms is not None:
            out["restrict_duration_ms"] = self.restrict_duration_ms
        if self.message is not None:
            out["message"] = self.message
        return out


# Module-level default source (tests inject their own)
_default_rng = random.Random()


def captcha_chance(trust_score: int) -> float:
    """Probability of a button captcha in the soft-enforcement band."""
    return CAPTCHA_CHANCE_HIGH_TRUST if trust_score > HIGH_TRUST_ABOVE else CAPTCHA_CHANCE_DEFAULT


def decide(
    suspicion_score: int,
    trust_score: int,
    *,
    rng: random.Random | None = None,
) -> EnforcementAction:
    """Pick the enforcement action for a user."""
    if suspicion_score < ENFORCE_NONE_BELOW:
        return EnforcementAction(action=ActionType.NONE)

    if suspicion_score < ENFORCE_MONITOR_BELOW:
        return EnforcementAction(action=ActionType.MONITOR)

    if suspicion_score < ENFORCE_SOFT_BELOW:
        _rng = rng or _default_rng
        if _rng.random() < captcha_chance(trust_score):
            return EnforcementAction(
                action=ActionType.CAPTCHA,
                captcha_type=CaptchaType.BUTTON,
                message=MESSAGE_BUTTON_CAPTCHA,
            )
        return EnforcementAction(
            action=ActionType.RATE_LIMIT,
            rate_limit_multiplier=SOFT_RATE_LIMIT_MULTIPLIER,
            message=MESSAGE_RATE_LIMIT,
        )

    if suspicion_score < ENFORCE_CAPTCHA_BELOW:
        return EnforcementAction(
            action=ActionType.CAPTCHA,
            captcha_type=CaptchaType.IMAGE,
            message=MESSAGE_IMAGE_CAPTCHA,
        )

    return EnforcementAction(
        action=ActionType.RESTRICT,
        restrict_duration_ms=RESTRICT_DURATION_MS,
        message=MESSAGE_RESTRICT,
    )
