"""
vigil.services.flag_service — Suspicion audit records
======================================================

A suspicion report whose recommendation is not ``allow`` opens a
``suspicion_scores`` row for moderator review.  While that flag is open,
later reports for the same (user, guild) refresh it in place.  Rows are
never deleted; a moderator resolves them with notes, and the next report
after that opens a fresh flag.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from vigil.database.models import SuspicionScore
from vigil.errors import InvalidInput, NotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from vigil.engine.scoring import Recommendation, SuspicionScoreBreakdown

logger = logging.getLogger(__name__)


def record_flag(
    engine: Engine,
    user_id: int,
    guild_id: str,
    breakdown: SuspicionScoreBreakdown,
    recommendation: Recommendation,
    reasons: Sequence[str],
) -> int:
    """Open a flag for the user, or refresh the one still awaiting review.

    A user has at most one unresolved flag per guild; repeated reports
    overwrite its scores and ``detected_at``.  Returns the flag id.
    """
    with Session(engine) as session:
        row = session.scalars(
            select(SuspicionScore)
            .where(
                SuspicionScore.user_id == user_id,
                SuspicionScore.guild_id == guild_id,
                SuspicionScore.resolved.is_(False),
            )
            .order_by(SuspicionScore.id.desc())
            .limit(1)
            .with_for_update()
        ).first()
        created = row is None
        if created:
            row = SuspicionScore(user_id=user_id, guild_id=guild_id)
            session.add(row)

        row.total_score = breakdown.total_score
        row.timing_score = breakdown.timing_score
        row.behavioral_score = breakdown.behavioral_score
        row.social_score = breakdown.social_score
        row.account_score = breakdown.account_score
        row.rate_limit_score = breakdown.rate_limit_score
        row.recommendation = recommendation.value
        row.reason = "; ".join(reasons) or None
        row.detected_at = datetime.now(UTC)
        session.flush()
        flag_id = row.id
        session.commit()

    if created:
        logger.info(
            "Flagged user %s in guild %s: score %d (%s)",
            user_id, guild_id, breakdown.total_score, recommendation.value,
        )
    else:
        logger.debug("Refreshed open flag %d for user %s", flag_id, user_id)
    return flag_id


def list_open_flags(
    engine: Engine, guild_id: str, limit: int = 50
) -> list[SuspicionScore]:
    """Unresolved flags for a guild, highest score first."""
    with Session(engine, expire_on_commit=False) as session:
        rows = session.scalars(
            select(SuspicionScore)
            .where(
                SuspicionScore.guild_id == guild_id,
                SuspicionScore.resolved.is_(False),
            )
            .order_by(SuspicionScore.total_score.desc(), SuspicionScore.id.desc())
            .limit(limit)
        ).all()
        session.expunge_all()
        return list(rows)


def resolve_flag(engine: Engine, flag_id: int, notes: str) -> SuspicionScore:
    """Mark a flag reviewed.  Resolving twice is rejected."""
    if not notes or not notes.strip():
        raise InvalidInput("notes", "must not be empty")

    with Session(engine, expire_on_commit=False) as session:
        row = session.get(SuspicionScore, flag_id)
        if row is None:
            raise NotFound(f"Suspicion flag {flag_id} not found")
        if row.resolved:
            raise InvalidInput("flag_id", "flag is already resolved")

        row.resolved = True
        row.resolved_at = datetime.now(UTC)
        row.resolution_notes = notes
        session.commit()
        session.expunge(row)

    logger.info("Suspicion flag %d resolved", flag_id)
    return row
