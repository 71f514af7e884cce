"""Tests for the bounded worker pool."""

import asyncio
import logging

import pytest

from lmq.jobs.pool import PoolClosedError, WorkerPool


async def _wait_on(event: asyncio.Event) -> str:
    await event.wait()
    return "done"


class TestWorkerPool:
    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            WorkerPool(0)

    @pytest.mark.asyncio
    async def test_enforces_capacity(self):
        pool = WorkerPool(2)
        release = asyncio.Event()

        assert pool.try_spawn("a", _wait_on(release))
        assert pool.try_spawn("b", _wait_on(release))
        assert pool.available_slots == 0
        assert not pool.try_spawn("c", _wait_on(release))

        release.set()
        await pool.join(timeout=1)
        assert pool.stats()["completed"] == 2

    @pytest.mark.asyncio
    async def test_one_task_per_key(self):
        pool = WorkerPool(5)
        release = asyncio.Event()

        assert pool.try_spawn("lesson-1", _wait_on(release))
        assert pool.is_running("lesson-1")
        assert not pool.try_spawn("lesson-1", _wait_on(release))
        assert pool.running_keys() == ["lesson-1"]

        release.set()
        await pool.join(timeout=1)
        assert not pool.is_running("lesson-1")
        assert pool.running_keys() == []

    @pytest.mark.asyncio
    async def test_slot_freed_when_task_finishes(self):
        pool = WorkerPool(1)
        release = asyncio.Event()
        pool.try_spawn("a", _wait_on(release))

        release.set()
        await asyncio.sleep(0.01)

        assert pool.active_count == 0
        assert pool.available_slots == 1

    @pytest.mark.asyncio
    async def test_logs_crashed_task(self, caplog):
        pool = WorkerPool(1)

        async def boom() -> None:
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.ERROR, logger="lmq.jobs.pool"):
            pool.try_spawn("a", boom())
            await asyncio.sleep(0.01)

        assert pool.stats()["crashed"] == 1
        assert "kaboom" in caplog.text
        assert pool.available_slots == 1

    @pytest.mark.asyncio
    async def test_join_cancels_stragglers(self):
        pool = WorkerPool(2)
        never = asyncio.Event()
        cancelled = []

        async def stubborn() -> None:
            try:
                await never.wait()
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        pool.try_spawn("a", stubborn())
        await asyncio.sleep(0)

        assert await pool.join(timeout=0.05) == 1
        assert cancelled == [True]
        assert pool.active_count == 0

    @pytest.mark.asyncio
    async def test_closed_pool_refuses_work(self):
        pool = WorkerPool(2)
        await pool.join()

        assert pool.is_closed
        assert pool.available_slots == 0
        assert not pool.try_spawn("a", asyncio.sleep(0))
        with pytest.raises(PoolClosedError):
            pool.spawn("a", asyncio.sleep(0))
