"""Bounded supervisor for worker tasks.

Every worker the server starts, from a sweep or from the enqueue fast
path, runs as a task owned by one WorkerPool. The pool caps how many run
at once, logs any exception a task lets escape, and can be joined at
shutdown so in-flight jobs get a chance to finalize.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class PoolClosedError(Exception):
    """Raised when spawning on a pool that is shutting down."""


class WorkerPool:
    """Tracks worker tasks and enforces a concurrency limit."""

    def __init__(self, max_workers: int = 5) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self._tasks: dict[str, asyncio.Task] = {}
        self._closed = False
        self._completed = 0
        self._crashed = 0

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    @property
    def available_slots(self) -> int:
        if self._closed:
            return 0
        return max(self.max_workers - len(self._tasks), 0)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def is_running(self, key: str) -> bool:
        return key in self._tasks

    def running_keys(self) -> list[str]:
        """Keys with a task still in flight."""
        return list(self._tasks)

    def stats(self) -> dict[str, int]:
        return {
            "active": self.active_count,
            "capacity": self.max_workers,
            "completed": self._completed,
            "crashed": self._crashed,
        }

    def try_spawn(self, key: str, coro: Coroutine[Any, Any, Any]) -> bool:
        """Start a task for ``key`` if a slot is free.

        The coroutine is closed without running when the pool is full,
        closed, or already running ``key``.

        Returns:
            True if the task was started.
        """
        if self._closed or key in self._tasks or self.available_slots == 0:
            coro.close()
            return False

        task = asyncio.create_task(coro, name=f"worker:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._on_done(k, t))
        return True

    def spawn(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Start a task for ``key``, raising if no slot is free.

        Raises:
            PoolClosedError: If the pool is shutting down.
            RuntimeError: If the pool is full or ``key`` is already running.
        """
        if self._closed:
            coro.close()
            raise PoolClosedError("Worker pool is closed")
        if not self.try_spawn(key, coro):
            raise RuntimeError(f"Cannot start worker for {key}: pool full or busy")
        return self._tasks[key]

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

        if task.cancelled():
            logger.warning("Worker task for %s was cancelled", key)
            return

        exc = task.exception()
        if exc is not None:
            self._crashed += 1
            logger.error(
                "Worker task for %s crashed: %s",
                key,
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            self._completed += 1

    async def join(self, timeout: float | None = None) -> int:
        """Stop accepting work and wait for running tasks.

        Tasks still running after ``timeout`` seconds are cancelled.

        Returns:
            Number of tasks that had to be cancelled.
        """
        self._closed = True
        tasks = list(self._tasks.values())
        if not tasks:
            return 0

        logger.info("Waiting for %d worker(s) to finish", len(tasks))
        _, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d worker(s) still running at shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)
