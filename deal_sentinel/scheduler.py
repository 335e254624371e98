"""
Periodic trigger for the refresh cycle.

`PollScheduler` runs a job once as soon as it is started, then every
``interval_sec`` seconds, as a single cancellable asyncio task.  ``run_now``
is the manual entry point; it shares the job with the timer path.

If a tick comes due while a cycle is still running (for example a manual
check), the tick is skipped rather than overlapping it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .config import cfg
from .models import RefreshReport

logger = logging.getLogger(__name__)


class PollScheduler:
    """Drive `PriceTracker.refresh_all` on a fixed interval."""

    def __init__(
        self,
        job: Callable[[], Awaitable[RefreshReport]],
        interval_sec: Optional[int] = None,
        is_busy: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.job = job
        self.interval_sec = interval_sec or cfg.poll_seconds
        self.is_busy = is_busy or (lambda: False)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def for_tracker(cls, tracker, interval_sec: Optional[int] = None) -> "PollScheduler":
        """Build a scheduler for `tracker` and let `add_tracked` re-arm it."""
        scheduler = cls(tracker.refresh_all, interval_sec, is_busy=lambda: tracker.is_refreshing)
        tracker.scheduler = scheduler
        return scheduler

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> bool:
        """Start the polling task unless it is already running."""
        if self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="deal-sentinel-poll")
        logger.info("Price checks armed, every %ss", self.interval_sec)
        return True

    start = arm

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_now(self) -> RefreshReport:
        """Run one cycle immediately, waiting for any cycle already in flight."""
        logger.info("Manual price check requested")
        return await self.job()

    async def tick(self) -> Optional[RefreshReport]:
        """One timer-driven cycle; returns None when skipped."""
        if self.is_busy():
            logger.info("Previous price check still running; skipping this tick")
            return None
        try:
            return await self.job()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error during price check: %s", exc)
            return None

    async def _loop(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval_sec)
