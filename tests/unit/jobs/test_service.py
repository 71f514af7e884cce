"""Tests for JobService: enqueue fast path and operator controls."""

import asyncio

import pytest

from lmq.db import Job, JobStatus
from lmq.jobs.dispatcher import Dispatcher
from lmq.jobs.exceptions import LessonNotFoundError
from lmq.jobs.pool import WorkerPool
from lmq.jobs.service import EnqueueResult, JobService, RetryResult, classify_retry
from lmq.jobs.source import MediaSourceResolver
from lmq.jobs.store import JobStore
from lmq.jobs.worker import TranscriptionWorker


@pytest.fixture
def build_service(connection_pool, media_root):
    def _build(provider, *, fast_path: bool = True, max_workers: int = 2) -> JobService:
        store = JobStore(connection_pool, worker_id="api:1")
        worker = TranscriptionWorker(
            store, provider, MediaSourceResolver(media_root), job_timeout=5.0
        )
        dispatcher = Dispatcher(store, WorkerPool(max_workers), worker)
        return JobService(store, dispatcher, fast_path=fast_path)

    return _build


async def _settle(service: JobService) -> None:
    """Wait for every started worker to finish, leaving the pool open."""
    pool = service.dispatcher.pool
    for _ in range(200):
        if pool.active_count == 0:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("workers still running")


class TestRequestProcessing:
    @pytest.mark.asyncio
    async def test_unknown_lesson(self, build_service, fake_provider):
        service = build_service(fake_provider)

        with pytest.raises(LessonNotFoundError):
            await service.request_processing("ghost")
        assert await service.get("ghost") is None

    @pytest.mark.asyncio
    async def test_fast_path_runs_job(self, build_service, fake_provider, pool_lesson):
        pool_lesson("l1")
        service = build_service(fake_provider)

        assert await service.request_processing("l1") is EnqueueResult.STARTED
        await _settle(service)

        job = await service.get("l1")
        assert job.status == JobStatus.COMPLETED
        assert job.attempt_count == 1

    @pytest.mark.asyncio
    async def test_repeat_request_is_folded_in(
        self, build_service, fake_provider, pool_lesson
    ):
        fake_provider.block = asyncio.Event()
        pool_lesson("l1")
        service = build_service(fake_provider)

        first = await service.request_processing("l1")
        second = await service.request_processing("l1")
        third = await service.request_processing("l1")

        assert first is EnqueueResult.STARTED
        assert second is third is EnqueueResult.ALREADY_ACTIVE

        fake_provider.block.set()
        await _settle(service)
        assert fake_provider.transcribed == ["clip.mp4"]
        assert (await service.get("l1")).attempt_count == 1

    @pytest.mark.asyncio
    async def test_without_fast_path_job_stays_pending(
        self, build_service, fake_provider, pool_lesson
    ):
        pool_lesson("l1")
        service = build_service(fake_provider, fast_path=False)

        assert await service.request_processing("l1") is EnqueueResult.STARTED

        job = await service.get("l1")
        assert job.status == JobStatus.PENDING
        assert job.attempt_count == 0

        assert await service.dispatcher.tick() == ["l1"]
        await _settle(service)
        assert (await service.get("l1")).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_full_pool_leaves_job_pending(
        self, build_service, fake_provider, pool_lesson
    ):
        fake_provider.block = asyncio.Event()
        pool_lesson("l1")
        pool_lesson("l2")
        service = build_service(fake_provider, max_workers=1)

        await service.request_processing("l1")
        await service.request_processing("l2")

        assert (await service.get("l2")).status == JobStatus.PENDING
        fake_provider.block.set()
        await _settle(service)

    @pytest.mark.asyncio
    async def test_completed_lesson_can_be_requested_again(
        self, build_service, fake_provider, pool_lesson
    ):
        pool_lesson("l1")
        service = build_service(fake_provider)

        await service.request_processing("l1")
        await _settle(service)
        assert await service.request_processing("l1") is EnqueueResult.STARTED
        await _settle(service)

        job = await service.get("l1")
        assert job.status == JobStatus.COMPLETED
        assert job.attempt_count == 2


class TestRetry:
    @pytest.mark.asyncio
    async def test_failed_job_retries_to_success(
        self, build_service, failing_provider, pool_lesson
    ):
        pool_lesson("l1")
        service = build_service(failing_provider)

        await service.request_processing("l1")
        await _settle(service)
        failed = await service.get("l1")
        assert failed.status == JobStatus.FAILED
        assert "HTTP 500" in failed.last_error

        failing_provider.transcribe_error = None
        assert await service.retry("l1") is RetryResult.QUEUED
        await _settle(service)

        job = await service.get("l1")
        assert job.status == JobStatus.COMPLETED
        assert job.last_error is None
        assert job.attempt_count == 2

    @pytest.mark.asyncio
    async def test_completed_job_is_rejected(
        self, build_service, fake_provider, pool_lesson
    ):
        pool_lesson("l1")
        service = build_service(fake_provider)
        await service.request_processing("l1")
        await _settle(service)

        assert await service.retry("l1") is RetryResult.REJECTED
        assert (await service.get("l1")).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_job(self, build_service, fake_provider, pool_lesson):
        pool_lesson("l1")
        service = build_service(fake_provider)

        assert await service.retry("l1") is RetryResult.NOT_FOUND

    @pytest.mark.asyncio
    async def test_idle_job_is_not_found(
        self, build_service, fake_provider, pool_lesson
    ):
        pool_lesson("l1")
        service = build_service(fake_provider, fast_path=False)
        await service.request_processing("l1")
        assert await service.cancel("l1")

        assert await service.retry("l1") is RetryResult.NOT_FOUND


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_pending(self, build_service, fake_provider, pool_lesson):
        pool_lesson("l1")
        service = build_service(fake_provider, fast_path=False)
        await service.request_processing("l1")

        assert await service.cancel("l1")
        assert (await service.get("l1")).status == JobStatus.IDLE
        assert await service.list_active() == []

    @pytest.mark.asyncio
    async def test_rerequest_waits_for_previous_worker(
        self, build_service, fake_provider, pool_lesson
    ):
        fake_provider.block = asyncio.Event()
        pool_lesson("l1")
        service = build_service(fake_provider)

        assert await service.request_processing("l1") is EnqueueResult.STARTED
        for _ in range(200):
            if fake_provider.transcribed:
                break
            await asyncio.sleep(0.01)
        assert await service.cancel("l1")
        assert await service.request_processing("l1") is EnqueueResult.STARTED

        # Old worker still inside the provider call: nothing new is claimed
        for _ in range(5):
            assert await service.dispatcher.tick() == []
        job = await service.get("l1")
        assert job.status == JobStatus.PENDING
        assert job.attempt_count == 1

        fake_provider.block.set()
        await _settle(service)
        assert await service.dispatcher.tick() == ["l1"]
        await _settle(service)

        job = await service.get("l1")
        assert job.status == JobStatus.COMPLETED
        assert job.attempt_count == 2

    @pytest.mark.asyncio
    async def test_cancel_missing(self, build_service, fake_provider):
        service = build_service(fake_provider)

        assert not await service.cancel("ghost")


class TestListActive:
    @pytest.mark.asyncio
    async def test_lists_pending_and_failed(
        self, build_service, failing_provider, pool_lesson
    ):
        pool_lesson("broken")
        pool_lesson("waiting")
        service = build_service(failing_provider)
        await service.request_processing("broken")
        await _settle(service)
        service.fast_path = False
        await service.request_processing("waiting")

        active = {j.entity_id: j.status for j in await service.list_active()}

        assert active == {"broken": JobStatus.FAILED, "waiting": JobStatus.PENDING}


@pytest.mark.parametrize(
    "status,expected",
    [
        (JobStatus.IDLE, RetryResult.NOT_FOUND),
        (JobStatus.COMPLETED, RetryResult.REJECTED),
        (JobStatus.FAILED, None),
        (JobStatus.PENDING, None),
        (JobStatus.PROCESSING, None),
    ],
)
def test_classify_retry(status, expected):
    job = Job(
        entity_id="l1",
        status=status,
        attempt_count=1,
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
    )
    assert classify_retry(job) is expected


def test_classify_retry_without_job():
    assert classify_retry(None) is RetryResult.NOT_FOUND
