"""
vigil.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- users                 — Community member profiles (read-only here; owned by the platform)
- user_stats            — Lifetime engagement counters (read-only here)
- command_history       — Append-only journal of reward-command executions
- rate_limit_violations — Cooldown/rate-limit hits reported by the bot
- user_behavior_metrics — Advisory per-user timing statistics (recomputable)
- trust_scores          — Per (user, guild) reputation ledger
- trust_score_events    — Append-only journal of applied trust deltas
- suspicion_scores      — Audit trail of fused suspicion breakdowns
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Vigil ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ViolationType(enum.StrEnum):
    """Kinds of rate-limit hits reported by the bot."""
    COOLDOWN = "cooldown"
    BURST = "burst"
    DAILY_CAP = "daily_cap"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Users — one row per Discord member (platform-owned)
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_hash: Mapped[str | None] = mapped_column(String(100), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.display_name!r}>"


# ---------------------------------------------------------------------------
# UserStats — lifetime social counters (platform-owned)
# ---------------------------------------------------------------------------
class UserStats(Base):
    __tablename__ = "user_stats"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    messages_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserStats user={self.user_id} messages={self.messages_count}>"


# ---------------------------------------------------------------------------
# CommandHistory — append-only command execution journal
# ---------------------------------------------------------------------------
class CommandHistory(Base):
    __tablename__ = "command_history"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[str] = mapped_column(String(255), nullable=False)
    command_name: Mapped[str] = mapped_column(String(100), nullable=False)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    response_time_ms: Mapped[int | None] = mapped_column(Integer, default=None)
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)

    __table_args__ = (
        Index("ix_command_history_user_time", "user_id", "executed_at"),
        Index("ix_command_history_command_time", "command_name", "executed_at"),
        Index("ix_command_history_time", "executed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CommandHistory id={self.id} user={self.user_id} "
            f"cmd={self.command_name!r}>"
        )


# ---------------------------------------------------------------------------
# RateLimitViolation — input signal for the rate-limit score
# ---------------------------------------------------------------------------
class RateLimitViolation(Base):
    __tablename__ = "rate_limit_violations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[str] = mapped_column(String(255), nullable=False)
    command_name: Mapped[str | None] = mapped_column(String(100), default=None)
    violation_type: Mapped[str | None] = mapped_column(String(50), default=None)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_violations_user_time", "user_id", "occurred_at"),
        Index("ix_rate_limit_violations_time", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RateLimitViolation id={self.id} user={self.user_id} "
            f"type={self.violation_type!r}>"
        )


# ---------------------------------------------------------------------------
# UserBehaviorMetrics — advisory timing cache, one row per user
# ---------------------------------------------------------------------------
class UserBehaviorMetrics(Base):
    """Last computed timing statistics for a user.

    Safe to recompute from ``command_history`` at any time.  The coefficient
    of variation is stored as ``round(cv_pct * 100)`` to keep the column
    integral.
    """
    __tablename__ = "user_behavior_metrics"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(255), nullable=False)
    total_commands: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_command_interval: Mapped[int | None] = mapped_column(Integer, default=None)
    stddev_command_interval: Mapped[int | None] = mapped_column(Integer, default=None)
    coefficient_variation: Mapped[int | None] = mapped_column(Integer, default=None)
    last_command_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_analysis_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_user_behavior_metrics_cv", "coefficient_variation"),
        Index("ix_user_behavior_metrics_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserBehaviorMetrics user={self.user_id} "
            f"cv={self.coefficient_variation}>"
        )


# ---------------------------------------------------------------------------
# TrustScore — per (user, guild) reputation counter
# ---------------------------------------------------------------------------
class TrustScore(Base):
    """Slow-moving 0–1000 reputation value, 500 is neutral.

    Only ``score`` is authoritative.  The ``*_score`` columns copy the
    matching components of the latest enforcement breakdown for moderator
    tooling.  ``last_reason`` is the reason of the latest delta;
    ``last_violation_at`` stamps the latest negative one.
    """
    __tablename__ = "trust_scores"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    score: Mapped[int] = mapped_column(Integer, default=500, nullable=False)
    account_factor_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    behavioral_history_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    social_signal_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reason: Mapped[str | None] = mapped_column(Text, default=None)
    last_violation_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("score BETWEEN 0 AND 1000", name="ck_trust_scores_range"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrustScore user={self.user_id} guild={self.guild_id!r} "
            f"score={self.score}>"
        )


# ---------------------------------------------------------------------------
# TrustScoreEvent — append-only delta journal
# ---------------------------------------------------------------------------
class TrustScoreEvent(Base):
    __tablename__ = "trust_score_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[str] = mapped_column(String(255), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    old_score: Mapped[int] = mapped_column(Integer, nullable=False)
    new_score: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_trust_score_events_user_guild", "user_id", "guild_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrustScoreEvent id={self.id} user={self.user_id} "
            f"{self.old_score}->{self.new_score}>"
        )


# ---------------------------------------------------------------------------
# SuspicionScore — audit record of a fused breakdown
# ---------------------------------------------------------------------------
class SuspicionScore(Base):
    __tablename__ = "suspicion_scores"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[str] = mapped_column(String(255), nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    timing_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    behavioral_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    social_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    account_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rate_limit_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    recommendation: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    resolution_notes: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        Index("ix_suspicion_scores_user_detected", "user_id", "detected_at"),
        Index("ix_suspicion_scores_active", "user_id", "resolved", "detected_at"),
        Index("ix_suspicion_scores_high", "total_score", "detected_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SuspicionScore id={self.id} user={self.user_id} "
            f"total={self.total_score} resolved={self.resolved}>"
        )
