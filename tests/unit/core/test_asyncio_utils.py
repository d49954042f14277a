"""Unit tests for asyncio task helpers."""

import asyncio
import logging

import pytest

from page_streamer.core.asyncio_utils import cancel_tasks, create_logged_task


class TestCreateLoggedTask:

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        async def boom():
            raise RuntimeError("pump broke")

        with caplog.at_level(logging.ERROR, logger="page_streamer"):
            task = create_logged_task(boom(), context="stderr-pump")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert any("stderr-pump" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_pending_set_tracks_task(self):
        pending = set()
        gate = asyncio.Event()
        task = create_logged_task(gate.wait(), pending=pending, context="waiter")

        assert pending == {task}
        assert task.get_name() == "waiter"
        gate.set()
        await task
        await asyncio.sleep(0)
        assert pending == set()


class TestCancelTasks:

    @pytest.mark.asyncio
    async def test_cancels_and_waits(self):
        pending = set()
        for _ in range(3):
            create_logged_task(asyncio.sleep(10), pending=pending)

        tasks = list(pending)
        await cancel_tasks(pending)

        assert all(t.cancelled() for t in tasks)

    @pytest.mark.asyncio
    async def test_empty_set(self):
        await cancel_tasks(set())
