"""Request-facing job operations: enqueue and operator controls.

Request handlers call JobService instead of the store directly, so the
enqueue fast path and the retry rules live in one place.
"""

from __future__ import annotations

import logging
from enum import Enum

from lmq.db.types import Job, JobStatus, JobSummary
from lmq.jobs.dispatcher import Dispatcher
from lmq.jobs.exceptions import LessonNotFoundError
from lmq.jobs.store import JobStore

logger = logging.getLogger(__name__)


class EnqueueResult(Enum):
    """Outcome of request_processing()."""

    STARTED = "started"
    ALREADY_ACTIVE = "already_active"


class RetryResult(Enum):
    """Outcome of an operator retry."""

    QUEUED = "queued"
    NOT_FOUND = "not_found"  # No job, or job is idle
    REJECTED = "rejected"  # Completed jobs are not retryable


def classify_retry(job: Job | None) -> RetryResult | None:
    """Decide whether a job may be retried.

    Failed jobs are retryable. Pending and processing jobs are too, as a
    forced reset for work stuck behind a dead worker.

    Returns:
        NOT_FOUND or REJECTED if the retry must not happen, None if the
        job may be reset to pending.
    """
    if job is None or job.status is JobStatus.IDLE:
        return RetryResult.NOT_FOUND
    if job.status is JobStatus.COMPLETED:
        return RetryResult.REJECTED
    return None


class JobService:
    """Enqueuer and operator control on top of the job store."""

    def __init__(
        self,
        store: JobStore,
        dispatcher: Dispatcher,
        *,
        fast_path: bool = True,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.fast_path = fast_path

    async def request_processing(self, entity_id: str) -> EnqueueResult:
        """Accept a processing request for a lesson without waiting on it.

        Marks the job pending and, if a worker slot is free, claims and
        starts it immediately. A job the fast path can't start stays
        pending for the next sweep.

        Raises:
            LessonNotFoundError: If the lesson doesn't exist.
        """
        if not await self.store.lesson_exists(entity_id):
            raise LessonNotFoundError(entity_id)

        if not await self.store.enqueue(entity_id):
            logger.info("Job %s already in progress, request folded in", entity_id)
            return EnqueueResult.ALREADY_ACTIVE

        await self._start_now(entity_id)
        return EnqueueResult.STARTED

    async def _start_now(self, entity_id: str) -> bool:
        """Claim and start a pending job right away if possible."""
        if not self.fast_path:
            return False
        if self.dispatcher.pool.available_slots == 0:
            logger.debug("No free worker slot, %s left for the next sweep", entity_id)
            return False
        if self.dispatcher.pool.is_running(entity_id):
            logger.info(
                "Previous worker for %s still running, left for the next sweep",
                entity_id,
            )
            return False

        job = await self.store.claim(entity_id)
        if job is None:
            # A sweep (here or in another process) got there first
            logger.debug("Job %s claimed elsewhere", entity_id)
            return False
        return await self.dispatcher.launch(job)

    async def list_active(self) -> list[JobSummary]:
        """Jobs that need attention: pending, processing and failed."""
        return await self.store.list_active()

    async def get(self, entity_id: str) -> Job | None:
        """The job for a lesson, or None if it never requested processing."""
        return await self.store.get_job(entity_id)

    async def retry(self, entity_id: str) -> RetryResult:
        """Put a failed or stuck job back through the enqueue path.

        Returns:
            QUEUED if the job is pending again, NOT_FOUND if there is no
            job (or it is idle), REJECTED if it is completed.
        """
        job = await self.store.get_job(entity_id)
        verdict = classify_retry(job)
        if verdict is not None:
            logger.info(
                "Retry of %s refused: %s",
                entity_id,
                job.status.value if job else "no job",
            )
            return verdict

        if not await self.store.reset(entity_id, force=True):
            # Finished between the read and the reset
            current = await self.store.get_job(entity_id)
            return classify_retry(current) or RetryResult.REJECTED

        logger.info(
            "Job %s reset from %s to pending by operator", entity_id, job.status.value
        )
        await self._start_now(entity_id)
        return RetryResult.QUEUED

    async def cancel(self, entity_id: str) -> bool:
        """Dismiss a job (set idle). A running worker is not interrupted.

        Returns:
            False if no job exists for the lesson.
        """
        cancelled = await self.store.cancel(entity_id)
        if cancelled:
            logger.info("Job %s cancelled by operator", entity_id)
        return cancelled
