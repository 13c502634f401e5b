"""
vigil.engine.events — CommandEvent and interval derivation
===========================================================

Every rate-limited reward command (``/work``, ``/daily``, …) is normalized
into a :class:`CommandEvent` before it reaches the analyzers.  Stores hand
events back newest-first; the analyzers work oldest-first.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

__all__ = ["CommandEvent", "chronological", "intervals_between"]


@dataclass(frozen=True, slots=True)
class CommandEvent:
    """One recorded command execution.  Immutable once recorded."""

    user_id: int
    guild_id: str
    command_name: str
    executed_at: datetime
    success: bool = True
    response_time_ms: int | None = None
    metadata: dict = field(default_factory=dict)
    event_id: int | None = None


def chronological(events: Sequence[CommandEvent]) -> list[CommandEvent]:
    """Return *events* sorted oldest-first by ``executed_at``."""
    return sorted(events, key=lambda e: e.executed_at)


def intervals_between(timestamps: Sequence[datetime]) -> list[float]:
    """Seconds between consecutive *timestamps*, oldest-first.

    ``[t0, t1, t2]`` → ``[t1 - t0, t2 - t1]``.  Fewer than two timestamps
    yield an empty list.
    """
    ordered = sorted(timestamps)
    return [
        (ordered[i] - ordered[i - 1]).total_seconds()
        for i in range(1, len(ordered))
    ]
