# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the sweep scheduler."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from membership_lifecycle.scheduler import SweepScheduler


class TestSchedule:
    def test_defaults(self):
        scheduler = SweepScheduler(AsyncMock())

        assert scheduler.interval == timedelta(hours=1)
        assert scheduler.startup_delay == timedelta(seconds=10)
        assert scheduler.running is False


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_records_result(self):
        sweep = AsyncMock(return_value={"processed": 2})
        scheduler = SweepScheduler(sweep)

        result = await scheduler.run_once()

        assert result == {"processed": 2}
        assert scheduler.last_result == {"processed": 2}
        assert scheduler.last_run is not None
        sweep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        scheduler = SweepScheduler(AsyncMock(side_effect=RuntimeError("gateway down")))

        result = await scheduler.run_once()

        assert result is None
        assert scheduler.last_run is not None
        assert "gateway down" in caplog.text


class TestBackgroundTask:
    @pytest.mark.asyncio
    async def test_first_cycle_after_startup_delay(self):
        ran = asyncio.Event()

        async def sweep():
            ran.set()
            return {}

        scheduler = SweepScheduler(sweep, interval=timedelta(hours=1), startup_delay=timedelta(0))
        scheduler.start()

        await asyncio.wait_for(ran.wait(), timeout=1)
        await scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        scheduler = SweepScheduler(AsyncMock(), startup_delay=timedelta(hours=1))

        first = scheduler.start()
        second = scheduler.start()

        assert first is second
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_before_first_cycle(self):
        sweep = AsyncMock()
        scheduler = SweepScheduler(sweep, startup_delay=timedelta(hours=1))
        scheduler.start()

        await asyncio.wait_for(scheduler.stop(), timeout=1)

        sweep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await SweepScheduler(AsyncMock()).stop()

    @pytest.mark.asyncio
    async def test_stop_lets_running_cycle_finish(self):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def sweep():
            started.set()
            await release.wait()
            finished.append(True)
            return {}

        scheduler = SweepScheduler(sweep, startup_delay=timedelta(0))
        scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=1)

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.01)
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=1)
        assert finished == [True]

    @pytest.mark.asyncio
    async def test_failed_cycle_does_not_end_schedule(self):
        calls = []
        second_cycle = asyncio.Event()

        async def sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first cycle fails")
            second_cycle.set()
            return {}

        scheduler = SweepScheduler(
            sweep,
            interval=timedelta(milliseconds=10),
            startup_delay=timedelta(0),
        )
        scheduler.start()

        await asyncio.wait_for(second_cycle.wait(), timeout=1)
        await scheduler.stop()

        assert len(calls) >= 2
