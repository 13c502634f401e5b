"""
vigil.services.providers — Collaborator interfaces + SQL implementations
=========================================================================

The anti-cheat core reads four external signal sources.  Each is a small
``Protocol`` so tests (or another platform) can plug in their own, and each
has a SQLAlchemy implementation over the shared schema.

All methods are **synchronous**; the service layer runs them through
:func:`vigil.database.engine.run_db`.  Database failures are re-raised as
:class:`~vigil.errors.UpstreamUnavailable` so a broken read can never be
mistaken for a clean zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vigil.database.engine import as_utc
from vigil.database.models import CommandHistory, RateLimitViolation, User, UserStats
from vigil.engine.events import CommandEvent
from vigil.errors import UpstreamUnavailable

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UserActivity:
    message_count: int = 0


@dataclass(frozen=True, slots=True)
class AccountInfo:
    created_at: datetime
    has_avatar: bool


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------
class CommandHistoryStore(Protocol):
    def recent(
        self, user_id: int, limit: int | None = 50, since: datetime | None = None
    ) -> list[CommandEvent]:
        """Most recent events for *user_id*, newest-first.  ``limit=None`` is unbounded."""
        ...


class RateLimitViolationStore(Protocol):
    def count_since(self, user_id: int, since: datetime) -> int:
        ...


class UserStatsProvider(Protocol):
    def get(self, user_id: int) -> UserActivity:
        ...


class AccountProvider(Protocol):
    def get(self, user_id: int) -> AccountInfo | None:
        """Account metadata, or ``None`` when the platform has no record."""
        ...


@dataclass(frozen=True, slots=True)
class Providers:
    """Bundle of the four signal sources handed to the service."""
    history: CommandHistoryStore
    violations: RateLimitViolationStore
    stats: UserStatsProvider
    accounts: AccountProvider


# ---------------------------------------------------------------------------
# SQL implementations
# ---------------------------------------------------------------------------
def _to_event(row: CommandHistory) -> CommandEvent:
    return CommandEvent(
        user_id=row.user_id,
        guild_id=row.guild_id,
        command_name=row.command_name,
        executed_at=as_utc(row.executed_at),
        success=row.success,
        response_time_ms=row.response_time_ms,
        metadata=dict(row.metadata_ or {}),
        event_id=row.id,
    )


class SqlCommandHistoryStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def recent(
        self, user_id: int, limit: int | None = 50, since: datetime | None = None
    ) -> list[CommandEvent]:
        query = select(CommandHistory).where(CommandHistory.user_id == user_id)
        if since is not None:
            query = query.where(CommandHistory.executed_at >= since)
        query = query.order_by(
            CommandHistory.executed_at.desc(), CommandHistory.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        try:
            with Session(self.engine) as session:
                return [_to_event(r) for r in session.scalars(query).all()]
        except SQLAlchemyError as exc:
            logger.error("Command history read failed for user %s: %s", user_id, exc)
            raise UpstreamUnavailable("command_history") from exc


class SqlRateLimitViolationStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def count_since(self, user_id: int, since: datetime) -> int:
        try:
            with Session(self.engine) as session:
                return session.scalar(
                    select(func.count())
                    .select_from(RateLimitViolation)
                    .where(
                        RateLimitViolation.user_id == user_id,
                        RateLimitViolation.occurred_at >= since,
                    )
                ) or 0
        except SQLAlchemyError as exc:
            logger.error("Violation count failed for user %s: %s", user_id, exc)
            raise UpstreamUnavailable("rate_limit_violations") from exc


class SqlUserStatsProvider:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, user_id: int) -> UserActivity:
        try:
            with Session(self.engine) as session:
                stats = session.get(UserStats, user_id)
        except SQLAlchemyError as exc:
            logger.error("User stats read failed for user %s: %s", user_id, exc)
            raise UpstreamUnavailable("user_stats") from exc
        # No stats row means no recorded messages
        return UserActivity(message_count=stats.messages_count if stats else 0)


class SqlAccountProvider:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, user_id: int) -> AccountInfo | None:
        try:
            with Session(self.engine) as session:
                user = session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.error("Account read failed for user %s: %s", user_id, exc)
            raise UpstreamUnavailable("users") from exc
        if user is None or user.created_at is None:
            return None
        return AccountInfo(
            created_at=as_utc(user.created_at),
            has_avatar=user.avatar_hash is not None,
        )


def sql_providers(engine: Engine) -> Providers:
    """Build the default SQL-backed provider bundle."""
    return Providers(
        history=SqlCommandHistoryStore(engine),
        violations=SqlRateLimitViolationStore(engine),
        stats=SqlUserStatsProvider(engine),
        accounts=SqlAccountProvider(engine),
    )
