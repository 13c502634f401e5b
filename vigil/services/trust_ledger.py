"""
vigil.services.trust_ledger — Per (user, guild) trust score ledger
===================================================================

Trust is a slow-moving 0–1000 counter (500 = neutral) adjusted by external
moderation outcomes: clean-history rewards, violation penalties, manual
review results.  The ledger never decides magnitudes; it applies and clamps
them.

Every delta is an atomic read-modify-write:
  1. Begin transaction
  2. ``SELECT … FOR UPDATE`` the row (lazily inserting the neutral row)
  3. Clamp ``old + delta`` into [0, 1000]
  4. Journal the change in ``trust_score_events``
  5. Commit

Concurrent first inserts for the same key are resolved with a SAVEPOINT:
the loser catches ``IntegrityError`` and re-reads the winner's row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vigil.constants import TRUST_MAX, TRUST_MAX_DELTA, TRUST_MIN, TRUST_NEUTRAL
from vigil.database.models import TrustScore, TrustScoreEvent
from vigil.errors import InvalidInput

if TYPE_CHECKING:
    from sqlalchemy import Engine, Select

    from vigil.engine.scoring import SuspicionScoreBreakdown

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrustDelta:
    old_score: int
    new_score: int


def clamp_trust(value: int) -> int:
    return max(TRUST_MIN, min(TRUST_MAX, value))


def validate_delta(delta: int, reason: str) -> None:
    """Reject zero, out-of-range, or unexplained deltas."""
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidInput("delta", "must be an integer")
    if delta == 0 or abs(delta) > TRUST_MAX_DELTA:
        raise InvalidInput(
            "delta", f"must be non-zero and within ±{TRUST_MAX_DELTA}"
        )
    if not reason or not reason.strip():
        raise InvalidInput("reason", "must not be empty")


def row_lock_query(user_id: int, guild_id: str) -> Select:
    """``SELECT … FOR UPDATE`` of one (user, guild) trust row."""
    return (
        select(TrustScore)
        .where(TrustScore.user_id == user_id, TrustScore.guild_id == guild_id)
        .with_for_update()
    )


class TrustScoreLedger:
    """SQL-backed trust ledger.  Contention is per-row only."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _locked_row(self, session: Session, user_id: int, guild_id: str) -> TrustScore:
        """Fetch the row under a row lock, inserting the neutral row if absent."""
        query = row_lock_query(user_id, guild_id)
        row = session.scalar(query)
        if row is not None:
            return row

        try:
            with session.begin_nested():   # SAVEPOINT
                row = TrustScore(user_id=user_id, guild_id=guild_id, score=TRUST_NEUTRAL)
                session.add(row)
                session.flush()
            return row
        except IntegrityError:
            # Another transaction inserted it first; lock theirs.
            return session.scalars(query.execution_options(populate_existing=True)).one()

    def get_or_init(
        self,
        user_id: int,
        guild_id: str,
        components: SuspicionScoreBreakdown | None = None,
    ) -> TrustScore:
        """Return the (user, guild) row, creating it at 500 if missing.

        When *components* is given, the advisory component columns are
        refreshed from it in the same transaction; ``score`` is untouched.
        """
        with Session(self.engine, expire_on_commit=False) as session:
            row = self._locked_row(session, user_id, guild_id)
            if components is not None:
                row.account_factor_score = components.account_score
                row.behavioral_history_score = components.behavioral_score
                row.social_signal_score = components.social_score
            session.commit()
            session.expunge(row)
            return row

    def apply_delta(
        self, user_id: int, guild_id: str, delta: int, reason: str
    ) -> TrustDelta:
        """Atomically add *delta* and clamp into [0, 1000]."""
        validate_delta(delta, reason)

        with Session(self.engine) as session:
            row = self._locked_row(session, user_id, guild_id)
            old = row.score
            new = clamp_trust(old + delta)

            row.score = new
            row.last_reason = reason
            if delta < 0:
                row.last_violation_at = datetime.now(UTC)

            session.add(TrustScoreEvent(
                user_id=user_id,
                guild_id=guild_id,
                delta=delta,
                old_score=old,
                new_score=new,
                reason=reason,
            ))
            session.commit()

        logger.info(
            "Trust score for user %s in guild %s: %d → %d (%+d, %s)",
            user_id, guild_id, old, new, delta, reason,
        )
        return TrustDelta(old_score=old, new_score=new)
