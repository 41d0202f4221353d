"""Tests for periodic background tasks."""

import asyncio

import pytest

from app.services.scheduler import PeriodicTask


class TestPeriodicTask:
    """Tests for the start/stop lifecycle."""

    def test_rejects_non_positive_interval(self):
        async def noop():
            return None

        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, noop)

    @pytest.mark.asyncio
    async def test_runs_repeatedly(self):
        calls = []

        async def work():
            calls.append(1)

        task = PeriodicTask("work", 0.01, work)
        task.start()
        await asyncio.sleep(0.06)
        await task.stop()

        assert len(calls) >= 2
        assert task.runs == len(calls)
        assert not task.is_running

    @pytest.mark.asyncio
    async def test_run_immediately(self):
        calls = []

        async def work():
            calls.append(1)

        task = PeriodicTask("eager", 60, work, run_immediately=True)
        task.start()
        await asyncio.sleep(0.01)

        assert calls == [1]
        assert task.is_running
        await task.stop()

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_the_loop(self):
        async def broken():
            raise RuntimeError("boom")

        task = PeriodicTask("broken", 0.01, broken)
        task.start()
        await asyncio.sleep(0.05)

        assert task.is_running
        assert task.runs >= 2
        await task.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_is_safe(self):
        async def work():
            return None

        task = PeriodicTask("idle", 60, work)
        await task.stop()

        task.start()
        first = task._task
        task.start()
        assert task._task is first

        await task.stop()
        await task.stop()
        assert task.runs == 0
