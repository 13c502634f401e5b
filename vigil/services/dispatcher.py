"""
vigil.services.dispatcher — Fire-and-forget timing analysis
============================================================

Recording a command must never wait on re-analysis.  The dispatcher
schedules :func:`analyze_and_store_metrics` as a named asyncio task, holds a
strong reference until it finishes, and logs (never raises) any failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from vigil.database.engine import run_db
from vigil.services.command_service import analyze_and_store_metrics

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from vigil.config import VigilConfig
    from vigil.services.providers import CommandHistoryStore

logger = logging.getLogger(__name__)


class AnalysisDispatcher:
    """Schedules background timing analysis jobs.

    - One task per recorded command; overlapping jobs for the same user are
      harmless (the metrics upsert is last-write-wins).
    - Each job is bounded by ``analysis_timeout_ms``.
    """

    def __init__(
        self,
        engine: Engine,
        history: CommandHistoryStore,
        config: VigilConfig,
    ) -> None:
        self.engine = engine
        self.history = history
        self.config = config
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _run(self, user_id: int, guild_id: str) -> None:
        timeout = self.config.analysis_timeout_ms / 1000
        try:
            await asyncio.wait_for(
                run_db(
                    analyze_and_store_metrics,
                    self.engine,
                    self.history,
                    user_id,
                    guild_id,
                    history_limit=self.config.history_limit,
                    min_events=self.config.min_timing_events,
                    deadline=time.monotonic() + timeout,
                ),
                timeout,
            )
        except TimeoutError:
            logger.warning(
                "Timing analysis for user %s timed out after %.0f ms",
                user_id, timeout * 1000,
            )
        except Exception:
            logger.exception("Timing analysis failed for user %s", user_id)

    def dispatch(self, user_id: int, guild_id: str) -> asyncio.Task:
        """Schedule analysis for *user_id* on the running loop and return."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(user_id, guild_id), name=f"timing-analysis-{user_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight job (tests and shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
