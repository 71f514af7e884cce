"""Periodic sweep that claims pending jobs and starts workers.

The dispatcher is the crash-recovery path of the queue. Any job left
pending, because its enqueuing process died before starting a worker or
because the fast path had no free slot, is claimed by the next sweep of
any live process sharing the database.

Each sweep:
- returns stale processing jobs (claimed too long ago) to pending
- claims up to min(batch_size, free worker slots) pending jobs
- starts one worker task per claimed job on the WorkerPool

The loop sleeps for the full interval after every sweep, regardless of
whether the workers it started have finished.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from lmq.db.types import Job
from lmq.jobs.pool import WorkerPool
from lmq.jobs.queue import DEFAULT_BATCH_SIZE, DEFAULT_STALE_TIMEOUT
from lmq.jobs.store import JobStore
from lmq.jobs.worker import TranscriptionWorker

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


class Dispatcher:
    """Background sweep loop for the job queue.

    Usage:
        dispatcher = Dispatcher(store, pool, worker)
        task = asyncio.create_task(dispatcher.run())
        # ... later ...
        dispatcher.stop()
        await task
    """

    def __init__(
        self,
        store: JobStore,
        pool: WorkerPool,
        worker: TranscriptionWorker,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        stale_after_seconds: int = DEFAULT_STALE_TIMEOUT,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Job store shared with the request handlers.
            pool: Worker pool that owns the started worker tasks.
            worker: Pipeline executed for each claimed job.
            interval_seconds: Seconds between sweeps.
            batch_size: Maximum jobs claimed per sweep.
            stale_after_seconds: Claim age after which processing jobs are
                returned to pending.
        """
        self.store = store
        self.pool = pool
        self.worker = worker
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.stale_after_seconds = stale_after_seconds
        self._stop_event = asyncio.Event()
        self._last_tick: datetime | None = None
        self._running = False
        self._ticks = 0

    async def run(self) -> None:
        """Run the sweep loop until stop() is called."""
        if self._running:
            logger.warning("Dispatcher already running")
            return

        self._running = True
        self._stop_event.clear()
        logger.info(
            "Dispatcher started (interval %gs, batch %d, stale after %ds)",
            self.interval_seconds,
            self.batch_size,
            self.stale_after_seconds,
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await self.tick()
                except Exception as e:
                    logger.exception("Dispatcher sweep failed: %s", e)

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                    break
                except asyncio.TimeoutError:
                    pass  # Interval elapsed
        finally:
            self._running = False
            logger.info("Dispatcher stopped after %d sweep(s)", self._ticks)

    def stop(self) -> None:
        """Signal the sweep loop to stop after the current sweep."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_tick(self) -> datetime | None:
        """Timestamp of the last completed sweep."""
        return self._last_tick

    async def tick(self) -> list[str]:
        """Run one sweep.

        Returns:
            Entity ids of the jobs claimed and started by this sweep.
        """
        recovered = await self.store.recover_stale(self.stale_after_seconds)
        if recovered:
            logger.warning("Returned %d stale job(s) to pending", recovered)

        limit = min(self.batch_size, self.pool.available_slots)
        started: list[str] = []
        if limit > 0:
            # A lesson whose previous worker is still running stays pending
            claimed = await self.store.claim_batch(
                limit, exclude=self.pool.running_keys()
            )
            for job in claimed:
                if await self.launch(job):
                    started.append(job.entity_id)
        else:
            logger.debug("No free worker slots, skipping claim")

        self._ticks += 1
        self._last_tick = datetime.now(timezone.utc)
        if started:
            logger.info("Sweep started %d job(s)", len(started))
        return started

    async def launch(self, job: Job) -> bool:
        """Start a worker for a job this process has just claimed.

        If no worker can be started (pool full or shutting down, or an
        older worker for the same lesson still running), the claim is
        released so the job goes back to pending instead of sitting in
        processing until stale recovery.

        Returns:
            True if a worker task was started.
        """
        if self.pool.try_spawn(job.entity_id, self.worker.run(job)):
            return True

        logger.info(
            "Could not start worker for %s (active %d/%d), releasing claim",
            job.entity_id,
            self.pool.active_count,
            self.pool.max_workers,
        )
        await self.store.release(job.entity_id, job.attempt_count)
        return False
