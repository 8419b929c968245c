"""Background sync scheduler.

Fires an independent, non-forced sync pass every ``interval_seconds``.  A
tick is just another caller of the sync operation: a failed tick is logged
and the next tick retries.  Ticks never overlap each other, though a manual
sync may still run concurrently with one.

Usage::

    scheduler = SyncScheduler(service.sync, interval_seconds=900)
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from src.biometrics.base import utc_now

logger = logging.getLogger("biometrics.sync.scheduler")

DEFAULT_INTERVAL_SECONDS = 900  # 15 minutes


@dataclass
class TickResult:
    """Outcome of one scheduled tick.

    Attributes:
        status:  'success' or 'error'.
        counts:  Readings written per category (success only).
        error:   Error message (error only).
        ran_at:  UTC time the tick finished.
    """

    status: str = "success"
    counts: dict[str, int] = field(default_factory=dict)
    error: str | None = None
    ran_at: datetime = field(default_factory=utc_now)


class SyncScheduler:
    """Run a sync callable on a fixed interval in a background task."""

    def __init__(
        self,
        run_sync: Callable[[], Awaitable[dict[str, int]]],
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            run_sync:         Async callable performing one non-forced sync.
            interval_seconds: Seconds between ticks.
        """
        self._run_sync = run_sync
        self._interval = interval_seconds
        self._task: asyncio.Task[Any] | None = None
        self.last_result: TickResult | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> int:
        return self._interval

    async def tick(self) -> TickResult:
        """Run one sync now, recording and logging the outcome."""
        try:
            counts = await self._run_sync()
        except Exception as exc:
            logger.error("Scheduled sync failed, retrying next tick: %s", exc)
            result = TickResult(status="error", error=str(exc))
        else:
            logger.info("Scheduled sync complete: %s", counts)
            result = TickResult(status="success", counts=counts)
        self.last_result = result
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Sync scheduler started (every %ds)", self._interval)
        self._task = asyncio.create_task(self._loop(), name="biometrics-sync-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sync scheduler stopped")
