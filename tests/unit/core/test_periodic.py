"""Tests for supervised periodic background tasks."""

import asyncio

import pytest

from authsentry.core.periodic import PeriodicTask


@pytest.mark.unit
class TestPeriodicTask:
    def test_rejects_non_positive_interval(self, mocker):
        with pytest.raises(ValueError):
            PeriodicTask("sweep", 0, mocker.AsyncMock())

    @pytest.mark.asyncio
    async def test_run_once_counts_runs(self, mocker):
        callback = mocker.AsyncMock()
        task = PeriodicTask("sweep", 60, callback)

        assert await task.run_once() is True

        callback.assert_awaited_once()
        assert task.runs == 1
        assert task.failures == 0

    @pytest.mark.asyncio
    async def test_run_once_logs_and_survives_failures(self, mocker):
        callback = mocker.AsyncMock(side_effect=RuntimeError("database down"))
        task = PeriodicTask("sweep", 60, callback)

        assert await task.run_once() is False

        assert task.runs == 1
        assert task.failures == 1

    @pytest.mark.asyncio
    async def test_loop_keeps_running_after_a_failing_tick(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        task = PeriodicTask("sweep", 0.01, flaky)

        await task.start()
        assert task.is_running
        await asyncio.sleep(0.1)
        await task.stop()

        assert not task.is_running
        assert task.failures == 1
        assert task.runs >= 2

    @pytest.mark.asyncio
    async def test_first_run_waits_one_interval(self, mocker):
        callback = mocker.AsyncMock()
        task = PeriodicTask("sweep", 60, callback)

        await task.start()
        await asyncio.sleep(0)
        await task.stop()

        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_twice_is_a_no_op(self, mocker):
        task = PeriodicTask("sweep", 60, mocker.AsyncMock())

        await task.start()
        first = task._task
        await task.start()

        assert task._task is first
        await task.stop()
