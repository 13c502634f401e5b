"""
vigil.services.command_service — Command recording & metrics refresh
======================================================================

Write side of the command history:

* :func:`record_command` appends one ``command_history`` row.
* :func:`record_violation` appends one ``rate_limit_violations`` row.
* :func:`analyze_and_store_metrics` is the background job fired after each
  recording.  It recomputes timing statistics from the latest history and
  upserts the advisory ``user_behavior_metrics`` row.

All functions are synchronous; callers bridge with ``run_db``.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vigil.database.models import (
    CommandHistory,
    RateLimitViolation,
    UserBehaviorMetrics,
)
from vigil.engine.events import chronological, intervals_between
from vigil.engine.timing import TimingResult, analyze_timing

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from vigil.services.providers import CommandHistoryStore

logger = logging.getLogger(__name__)


def record_command(
    engine: Engine,
    *,
    user_id: int,
    guild_id: str,
    command_name: str,
    success: bool = True,
    response_time_ms: int | None = None,
    metadata: dict[str, Any] | None = None,
    executed_at: datetime | None = None,
) -> int:
    """Insert a command execution and return its id."""
    with Session(engine) as session:
        row = CommandHistory(
            user_id=user_id,
            guild_id=guild_id,
            command_name=command_name,
            executed_at=executed_at or datetime.now(UTC),
            success=success,
            response_time_ms=response_time_ms,
            metadata_=metadata or {},
        )
        session.add(row)
        session.flush()
        event_id = row.id
        session.commit()
    return event_id


def record_violation(
    engine: Engine,
    *,
    user_id: int,
    guild_id: str,
    command_name: str | None,
    violation_type: str | None,
    occurred_at: datetime | None = None,
) -> int:
    """Insert a rate-limit violation and return its id."""
    with Session(engine) as session:
        row = RateLimitViolation(
            user_id=user_id,
            guild_id=guild_id,
            command_name=command_name,
            violation_type=violation_type,
            occurred_at=occurred_at or datetime.now(UTC),
        )
        session.add(row)
        session.flush()
        violation_id = row.id
        session.commit()
    logger.info(
        "Rate limit violation recorded for user %s: %s on %s",
        user_id, violation_type, command_name,
    )
    return violation_id


def _apply_metrics(
    row: UserBehaviorMetrics,
    *,
    guild_id: str,
    total_commands: int,
    timing: TimingResult,
    last_command_at: datetime,
    analyzed_at: datetime,
) -> None:
    row.guild_id = guild_id
    row.total_commands = total_commands
    row.avg_command_interval = round(timing.mean)
    row.stddev_command_interval = round(timing.stddev)
    row.coefficient_variation = round(timing.cv * 100)   # pct × 100
    row.last_command_at = last_command_at
    row.last_analysis_at = analyzed_at


def analyze_and_store_metrics(
    engine: Engine,
    history: CommandHistoryStore,
    user_id: int,
    guild_id: str,
    *,
    history_limit: int = 50,
    min_events: int = 30,
    deadline: float | None = None,
) -> TimingResult | None:
    """Recompute timing statistics for *user_id* and upsert the metrics row.

    Returns ``None`` without writing when fewer than *min_events* events
    exist.  *deadline* is a :func:`time.monotonic` timestamp; when it has
    passed by the time the upsert is ready, the transaction is rolled back
    and ``None`` is returned.  The next recorded command retries.
    """
    events = history.recent(user_id, limit=history_limit)
    if len(events) < min_events:
        logger.debug(
            "Skipping timing analysis for user %s: %d/%d events",
            user_id, len(events), min_events,
        )
        return None

    ordered = chronological(events)
    timing = analyze_timing(intervals_between([e.executed_at for e in ordered]))
    now = datetime.now(UTC)

    with Session(engine) as session:
        row = session.get(UserBehaviorMetrics, user_id)
        if row is None:
            row = UserBehaviorMetrics(user_id=user_id)
            session.add(row)
        _apply_metrics(
            row,
            guild_id=guild_id,
            total_commands=len(events),
            timing=timing,
            last_command_at=ordered[-1].executed_at,
            analyzed_at=now,
        )
        try:
            session.flush()
        except IntegrityError:
            # A concurrent analysis inserted first; overwrite it (last write wins).
            session.rollback()
            row = session.get(UserBehaviorMetrics, user_id)
            _apply_metrics(
                row,
                guild_id=guild_id,
                total_commands=len(events),
                timing=timing,
                last_command_at=ordered[-1].executed_at,
                analyzed_at=now,
            )
            session.flush()

        if deadline is not None and time.monotonic() > deadline:
            session.rollback()
            logger.warning(
                "Timing analysis for user %s exceeded its deadline; discarded",
                user_id,
            )
            return None
        session.commit()

    if timing.is_suspicious:
        logger.warning(
            "Suspicious timing detected for user %s: %s", user_id, timing.reason
        )
    return timing
