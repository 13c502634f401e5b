"""
vigil.services.anticheat_service — Anti-cheat operations
=========================================================

The async façade the API (and any other caller) talks to.  It gathers the
signals from the providers, runs the pure analyzers in
:mod:`vigil.engine`, and applies the trust ledger.

Pipeline for a suspicion report:
  1. Validate identifiers (before any I/O)
  2. Fetch the five independent signal sources concurrently
  3. Resolve each component (insufficient data → 0 with a reason)
  4. Fuse with :func:`compute_suspicion`
  5. Open (or refresh) the audit flag when the recommendation is not ``allow``

A failed fetch raises :class:`UpstreamUnavailable`; it is never replaced by
a zero score.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from vigil.database.engine import run_db
from vigil.database.models import ViolationType
from vigil.engine.enforcement import ActionType, EnforcementAction, decide
from vigil.engine.events import chronological, intervals_between
from vigil.engine.scoring import (
    BehavioralScore,
    Recommendation,
    SuspicionInputs,
    SuspicionScoreBreakdown,
    calculate_account_factor,
    calculate_behavioral_score,
    calculate_rate_limit_score,
    calculate_social_signal,
    compute_suspicion,
    recommendation_for,
    social_ratio,
)
from vigil.engine.sessions import analyze_command_sequences, analyze_sessions
from vigil.engine.timing import (
    SuspicionLevel,
    analyze_timing,
    calculate_z_scores,
    check_snipe,
    timing_suspicion_score,
)
from vigil.errors import AntiCheatError, InvalidInput, UpstreamUnavailable
from vigil.services import flag_service
from vigil.services.command_service import record_command, record_violation
from vigil.services.trust_ledger import TrustDelta, validate_delta

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from vigil.config import VigilConfig
    from vigil.database.models import SuspicionScore, TrustScore
    from vigil.engine.events import CommandEvent
    from vigil.services.dispatcher import AnalysisDispatcher
    from vigil.services.providers import Providers
    from vigil.services.trust_ledger import TrustScoreLedger

logger = logging.getLogger(__name__)

MAX_COMMAND_NAME = 100
MAX_GUILD_ID = 255


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------
def validate_user_id(user_id: Any) -> int:
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise InvalidInput("user_id", "must be a positive integer")
    return user_id


def validate_guild_id(guild_id: Any) -> str:
    """Guild ids are platform snowflakes carried as numeric strings."""
    if not isinstance(guild_id, str) or not (guild_id.isascii() and guild_id.isdigit()):
        raise InvalidInput("guild_id", "must be a non-empty numeric string")
    if len(guild_id) > MAX_GUILD_ID:
        raise InvalidInput("guild_id", f"must be at most {MAX_GUILD_ID} characters")
    return guild_id


def validate_command_name(command_name: Any) -> str:
    if not isinstance(command_name, str) or not command_name.strip():
        raise InvalidInput("command_name", "must not be empty")
    if len(command_name) > MAX_COMMAND_NAME:
        raise InvalidInput(
            "command_name", f"must be at most {MAX_COMMAND_NAME} characters"
        )
    return command_name


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RecordResult:
    recorded: bool
    event_id: int


@dataclass(frozen=True, slots=True)
class TimingReport:
    has_timing_pattern: bool
    cv: float
    level: SuspicionLevel
    cooldown_snipe_rate: float
    has_cooldown_snipping: bool
    has_unnatural_consistency: bool
    reason: str
    command_count: int


@dataclass(frozen=True, slots=True)
class SuspicionReport:
    breakdown: SuspicionScoreBreakdown
    recommendation: Recommendation
    reasons: list[str] = field(default_factory=list)
    flag_id: int | None = None

    @property
    def total_score(self) -> int:
        return self.breakdown.total_score


@dataclass(frozen=True, slots=True)
class EnforcementReport:
    action: EnforcementAction
    suspicion_score: int
    trust_score: int


INSUFFICIENT_TIMING = "Insufficient data for analysis (need {n}+ commands)"
INSUFFICIENT_BEHAVIOR = "Insufficient command history for behavioral analysis"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class AntiCheatService:
    """Async entry point for every anti-cheat operation."""

    def __init__(
        self,
        engine: Engine,
        providers: Providers,
        config: VigilConfig,
        ledger: TrustScoreLedger,
        dispatcher: AnalysisDispatcher | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.engine = engine
        self.providers = providers
        self.config = config
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.rng = rng

    async def _fetch(self, source: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a store call off-loop; any non-domain failure becomes UpstreamUnavailable."""
        try:
            return await run_db(func, *args, **kwargs)
        except AntiCheatError:
            raise
        except Exception as exc:
            logger.error("Store %s failed: %s", source, exc)
            raise UpstreamUnavailable(source) from exc

    # ----- recording -------------------------------------------------------
    async def record_command_execution(
        self,
        user_id: int,
        guild_id: str,
        command_name: str,
        success: bool = True,
        response_time_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RecordResult:
        """Append a command event and schedule re-analysis without waiting."""
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        validate_command_name(command_name)
        if command_name not in self.config.tracked_commands:
            raise InvalidInput(
                "command_name",
                f"must be one of {', '.join(self.config.tracked_commands)}",
            )
        if response_time_ms is not None and response_time_ms < 0:
            raise InvalidInput("response_time_ms", "must not be negative")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidInput("metadata", "must be an object")

        event_id = await self._fetch(
            "command_history",
            record_command,
            self.engine,
            user_id=user_id,
            guild_id=guild_id,
            command_name=command_name,
            success=success,
            response_time_ms=response_time_ms,
            metadata=metadata,
        )
        if self.dispatcher is not None:
            self.dispatcher.dispatch(user_id, guild_id)
        return RecordResult(recorded=True, event_id=event_id)

    async def record_rate_limit_violation(
        self,
        user_id: int,
        guild_id: str,
        command_name: str,
        violation_type: str,
    ) -> int:
        """Record a cooldown/cap violation; feeds the rate-limit signal."""
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        validate_command_name(command_name)
        if violation_type not in set(ViolationType):
            raise InvalidInput(
                "violation_type",
                f"must be one of {', '.join(v.value for v in ViolationType)}",
            )

        return await self._fetch(
            "rate_limit_violations",
            record_violation,
            self.engine,
            user_id=user_id,
            guild_id=guild_id,
            command_name=command_name,
            violation_type=violation_type,
        )

    # ----- timing ----------------------------------------------------------
    async def analyze_timing_patterns(self, user_id: int) -> TimingReport:
        """CV, cooldown-snipe and z-score analysis of the latest history."""
        validate_user_id(user_id)
        events: list[CommandEvent] = await self._fetch(
            "command_history",
            self.providers.history.recent,
            user_id,
            limit=self.config.history_limit,
        )

        if len(events) < self.config.min_timing_events:
            return TimingReport(
                has_timing_pattern=False,
                cv=0.0,
                level=SuspicionLevel.NONE,
                cooldown_snipe_rate=0.0,
                has_cooldown_snipping=False,
                has_unnatural_consistency=False,
                reason=INSUFFICIENT_TIMING.format(n=self.config.min_timing_events),
                command_count=len(events),
            )

        intervals = intervals_between([e.executed_at for e in events])
        timing = analyze_timing(intervals)
        snipe = check_snipe(intervals, self.config.expected_cooldown_seconds)
        zscores = calculate_z_scores(intervals)

        if timing.is_suspicious:
            reason = timing.reason
        else:
            reason = snipe.reason or zscores.reason or timing.reason

        return TimingReport(
            has_timing_pattern=timing.is_suspicious,
            cv=timing.cv,
            level=timing.level,
            cooldown_snipe_rate=snipe.snipe_rate,
            has_cooldown_snipping=snipe.is_suspicious,
            has_unnatural_consistency=(
                timing.level is SuspicionLevel.EXTREME
                or zscores.has_unnatural_consistency
            ),
            reason=reason,
            command_count=len(events),
        )

    # ----- behavior --------------------------------------------------------
    def _behavioral(
        self, window: list[CommandEvent], message_count: int
    ) -> BehavioralScore:
        ordered = chronological(window)
        session = analyze_sessions([e.executed_at for e in ordered])
        sequence = analyze_command_sequences([e.command_name for e in ordered])
        return calculate_behavioral_score(
            session, sequence, social_ratio(message_count, len(window))
        )

    async def calculate_behavioral_score(
        self, user_id: int, guild_id: str
    ) -> BehavioralScore:
        """Session rhythm, sequence repetition and social ratio over the window."""
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        since = datetime.now(UTC) - timedelta(days=self.config.behavior_window_days)

        window, activity = await asyncio.gather(
            self._fetch(
                "command_history",
                self.providers.history.recent,
                user_id,
                limit=None,
                since=since,
            ),
            self._fetch("user_stats", self.providers.stats.get, user_id),
        )

        if len(window) < self.config.min_behavior_events:
            return BehavioralScore(
                score=0,
                has_natural_breaks=True,
                has_repetitive_sequences=False,
                social_ratio=1.0,
                reasons=[INSUFFICIENT_BEHAVIOR],
            )
        return self._behavioral(window, activity.message_count)

    # ----- fusion ----------------------------------------------------------
    async def calculate_suspicion_score(
        self, user_id: int, guild_id: str, *, persist: bool = True
    ) -> SuspicionReport:
        """Fuse all five signals into a 0–100 score with a recommendation.

        When *persist* is set and the recommendation is not ``allow`` the
        breakdown is stored as an audit flag.
        """
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        cfg = self.config
        now = datetime.now(UTC)
        history = self.providers.history

        recent, window, violations, activity, account = await asyncio.gather(
            self._fetch("command_history", history.recent, user_id, limit=cfg.history_limit),
            self._fetch(
                "command_history",
                history.recent,
                user_id,
                limit=None,
                since=now - timedelta(days=cfg.behavior_window_days),
            ),
            self._fetch(
                "rate_limit_violations",
                self.providers.violations.count_since,
                user_id,
                now - timedelta(hours=cfg.violation_window_hours),
            ),
            self._fetch("user_stats", self.providers.stats.get, user_id),
            self._fetch("users", self.providers.accounts.get, user_id),
        )
        message_count = activity.message_count
        reasons: list[str] = []

        timing_score = 0
        if len(recent) >= cfg.min_timing_events:
            timing = analyze_timing(intervals_between([e.executed_at for e in recent]))
            timing_score = timing_suspicion_score(timing)
            if timing_score:
                reasons.append(timing.reason)

        behavioral_score = 0
        if len(window) >= cfg.min_behavior_events:
            behavior = self._behavioral(window, message_count)
            behavioral_score = behavior.score
            reasons.extend(behavior.reasons)

        social_score = calculate_social_signal(message_count, len(window))

        # Unknown account: no evidence either way
        account_score = 0
        if account is not None:
            age_days = (now - account.created_at).total_seconds() / 86400
            account_score = calculate_account_factor(
                age_days, account.has_avatar, message_count
            )
            if age_days < 7:
                reasons.append("New account (< 7 days)")

        rate_limit_score = calculate_rate_limit_score(violations)
        if violations > 0:
            reasons.append(
                f"{violations} rate limit violations in last "
                f"{cfg.violation_window_hours}h"
            )

        breakdown = compute_suspicion(SuspicionInputs(
            timing_score=timing_score,
            behavioral_score=behavioral_score,
            rate_limit_score=rate_limit_score,
            social_score=social_score,
            account_score=account_score,
        ))
        recommendation = recommendation_for(breakdown.total_score)

        flag_id = None
        if persist and recommendation is not Recommendation.ALLOW:
            flag_id = await self._fetch(
                "suspicion_scores", flag_service.record_flag, self.engine, user_id, guild_id,
                breakdown, recommendation, reasons,
            )

        return SuspicionReport(
            breakdown=breakdown,
            recommendation=recommendation,
            reasons=reasons,
            flag_id=flag_id,
        )

    # ----- enforcement -----------------------------------------------------
    async def get_enforcement_action(
        self, user_id: int, guild_id: str
    ) -> EnforcementReport:
        """Pick an action from the fused suspicion score and current trust.

        Only a ``restrict`` outcome is flagged for moderator review.
        """
        report = await self.calculate_suspicion_score(user_id, guild_id, persist=False)
        trust = await self._fetch(
            "trust_scores", self.ledger.get_or_init, user_id, guild_id, report.breakdown
        )
        action = decide(report.total_score, trust.score, rng=self.rng)

        if action.action is ActionType.RESTRICT:
            logger.warning(
                "Restricting user %s in guild %s (suspicion %d, trust %d)",
                user_id, guild_id, report.total_score, trust.score,
            )
            await self._fetch(
                "suspicion_scores", flag_service.record_flag, self.engine, user_id, guild_id,
                report.breakdown, report.recommendation, report.reasons,
            )

        return EnforcementReport(
            action=action,
            suspicion_score=report.total_score,
            trust_score=trust.score,
        )

    # ----- trust -----------------------------------------------------------
    async def get_trust_score(self, user_id: int, guild_id: str) -> TrustScore:
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        return await self._fetch("trust_scores", self.ledger.get_or_init, user_id, guild_id)

    async def update_trust_score(
        self, user_id: int, guild_id: str, delta: int, reason: str
    ) -> TrustDelta:
        """Apply a signed moderation delta, clamped into [0, 1000]."""
        validate_user_id(user_id)
        validate_guild_id(guild_id)
        validate_delta(delta, reason)
        return await self._fetch(
            "trust_scores", self.ledger.apply_delta, user_id, guild_id, delta, reason
        )

    # ----- flags -----------------------------------------------------------
    async def list_open_flags(
        self, guild_id: str, limit: int = 50
    ) -> list[SuspicionScore]:
        validate_guild_id(guild_id)
        return await self._fetch(
            "suspicion_scores", flag_service.list_open_flags, self.engine, guild_id, limit
        )

    async def resolve_flag(self, flag_id: int, notes: str) -> SuspicionScore:
        if isinstance(flag_id, bool) or not isinstance(flag_id, int) or flag_id <= 0:
            raise InvalidInput("flag_id", "must be a positive integer")
        return await self._fetch(
            "suspicion_scores", flag_service.resolve_flag, self.engine, flag_id, notes
        )
