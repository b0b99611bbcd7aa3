# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Periodic scheduling of sweep cycles.

One sweep runs shortly after startup, then one per interval. Cycles never
overlap: the next wait starts when the previous cycle has finished. A
cycle that raises is logged and the schedule carries on.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Runs a sweep coroutine on a fixed interval.

    Attributes:
        interval: Time between the end of one cycle and the start of the next.
        startup_delay: Delay before the first cycle.
        last_run: When the last cycle started, or None.
        last_result: Statistics returned by the last successful cycle.

    Example:
        >>> scheduler = SweepScheduler(sweeper.sweep, interval=timedelta(hours=1))
        >>> scheduler.start()
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        sweep: Callable[[], Awaitable[Dict[str, Any]]],
        interval: timedelta = timedelta(hours=1),
        startup_delay: timedelta = timedelta(seconds=10),
    ):
        """Initialize the scheduler.

        Args:
            sweep: Coroutine function running one sweep cycle.
            interval: Time between cycles (default one hour).
            startup_delay: Delay before the first cycle (default 10 seconds).
        """
        self.sweep = sweep
        self.interval = interval
        self.startup_delay = startup_delay
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[Dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[Dict[str, Any]]:
        """Run one cycle, logging rather than raising on failure."""
        self.last_run = datetime.now(timezone.utc)
        try:
            self.last_result = await self.sweep()
            return self.last_result
        except Exception as e:
            logger.exception(f"Sweep cycle failed: {e}")
            return None

    async def run_forever(self) -> None:
        """Startup delay, then cycles separated by ``interval`` until stopped."""
        if self._stop_event is None:
            self._stop_event = asyncio.Event()

        if await self._wait(self.startup_delay):
            return
        while True:
            await self.run_once()
            if await self._wait(self.interval):
                return

    async def _wait(self, delay: timedelta) -> bool:
        """Sleep for ``delay``; returns True early if a stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay.total_seconds())
            return True
        except asyncio.TimeoutError:
            return False

    def start(self) -> asyncio.Task:
        """Start the schedule on the running event loop (idempotent)."""
        if self.running:
            return self._task

        logger.info(
            f"Scheduling sweeps every {self.interval}, first in {self.startup_delay}"
        )
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self.run_forever(), name="membership-sweep"
        )
        return self._task

    async def stop(self) -> None:
        """Stop the schedule. A cycle in progress runs to completion first."""
        if self._task is None:
            return

        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Sweep schedule stopped")
