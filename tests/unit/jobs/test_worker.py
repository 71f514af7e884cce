"""Tests for the transcription worker pipeline."""

import asyncio
from pathlib import Path

import pytest

from lmq.db import JobStatus, get_lesson
from lmq.db.json_schemas import TranscriptPayload
from lmq.jobs.source import MediaSourceResolver
from lmq.jobs.store import JobStore
from lmq.jobs.worker import TranscriptionWorker, result_ref_for
from lmq.provider import ProviderHTTPError, Segment, TranscriptionResult


@pytest.fixture
def store(connection_pool) -> JobStore:
    return JobStore(connection_pool, worker_id="test-host:1")


@pytest.fixture
def make_worker(store, media_root: Path):
    def _make(provider, **kwargs) -> TranscriptionWorker:
        return TranscriptionWorker(
            store, provider, MediaSourceResolver(media_root), **kwargs
        )

    return _make


@pytest.fixture
def claimed_job(store, pool_lesson):
    """Enqueue and claim a job for a fresh lesson."""

    async def _claim(lesson_id: str = "l1", **lesson_kwargs):
        pool_lesson(lesson_id, **lesson_kwargs)
        assert await store.enqueue(lesson_id)
        job = await store.claim(lesson_id)
        assert job is not None
        return job

    return _claim


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestSuccessfulRun:
    @pytest.mark.asyncio
    async def test_completes_and_stores_results(
        self, store, make_worker, claimed_job, fake_provider, connection_pool
    ):
        job = await claimed_job()

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.COMPLETED
        assert outcome.result_ref == result_ref_for("l1")

        stored = await store.get_job("l1")
        assert stored.status == JobStatus.COMPLETED
        assert stored.result_ref == "lesson:l1/transcription"
        assert stored.last_error is None

        with connection_pool.read_connection() as conn:
            lesson = get_lesson(conn, "l1")
        payload = TranscriptPayload.model_validate_json(lesson.transcription)
        assert payload.en == fake_provider.result.text
        assert payload.es == ""
        assert [c.text for c in payload.cues] == [
            "Welcome to the course.",
            "Today we cover queues.",
        ]
        assert lesson.summary == "An introduction to queues."
        assert fake_provider.summarized == [fake_provider.result.text]

    @pytest.mark.asyncio
    async def test_summary_failure_still_completes(
        self, store, make_worker, claimed_job, fake_provider, connection_pool
    ):
        fake_provider.summarize_error = ProviderHTTPError(503, "model loading")
        job = await claimed_job()

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.COMPLETED
        with connection_pool.read_connection() as conn:
            lesson = get_lesson(conn, "l1")
        assert lesson.transcription is not None
        assert lesson.summary is None

    @pytest.mark.asyncio
    async def test_slow_summary_outside_job_deadline(
        self, store, make_worker, claimed_job, fake_provider, connection_pool
    ):
        fake_provider.summarize_delay = 0.3
        job = await claimed_job()

        outcome = await make_worker(
            fake_provider, job_timeout=0.1, summary_timeout=2.0
        ).run(job)

        assert outcome.status == JobStatus.COMPLETED
        assert (await store.get_job("l1")).status == JobStatus.COMPLETED
        with connection_pool.read_connection() as conn:
            lesson = get_lesson(conn, "l1")
        assert lesson.transcription is not None
        assert lesson.summary == "An introduction to queues."

    @pytest.mark.asyncio
    async def test_summary_timeout_still_completes(
        self, store, make_worker, claimed_job, fake_provider, connection_pool
    ):
        fake_provider.summarize_delay = 1.0
        job = await claimed_job()

        outcome = await make_worker(
            fake_provider, job_timeout=0.3, summary_timeout=0.05
        ).run(job)

        assert outcome.status == JobStatus.COMPLETED
        stored = await store.get_job("l1")
        assert stored.status == JobStatus.COMPLETED
        assert stored.last_error is None
        with connection_pool.read_connection() as conn:
            lesson = get_lesson(conn, "l1")
        assert lesson.transcription is not None
        assert lesson.summary is None

    @pytest.mark.asyncio
    async def test_summary_can_be_disabled(
        self, make_worker, claimed_job, fake_provider
    ):
        job = await claimed_job()

        outcome = await make_worker(fake_provider, summarize=False).run(job)

        assert outcome.status == JobStatus.COMPLETED
        assert fake_provider.summarized == []

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_summary(
        self, make_worker, claimed_job, fake_provider
    ):
        fake_provider.result = TranscriptionResult(text="   ", segments=[])
        job = await claimed_job()

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.COMPLETED
        assert fake_provider.summarized == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_provider_http_error_fails_job(
        self, store, make_worker, claimed_job, failing_provider
    ):
        job = await claimed_job()

        outcome = await make_worker(failing_provider).run(job)

        assert outcome.status == JobStatus.FAILED
        stored = await store.get_job("l1")
        assert stored.status == JobStatus.FAILED
        assert "HTTP 500" in stored.last_error
        assert stored.last_error.startswith("transcription failed:")

    @pytest.mark.asyncio
    async def test_source_unavailable_fails_without_provider_call(
        self, store, make_worker, claimed_job, fake_provider
    ):
        job = await claimed_job(content_type="text", content_url=None)

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.FAILED
        assert outcome.error.startswith("source unavailable:")
        assert fake_provider.transcribed == []

    @pytest.mark.asyncio
    async def test_missing_media_file(self, make_worker, claimed_job, fake_provider):
        job = await claimed_job(content_url="/assets/not-uploaded.mp4")

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.FAILED
        assert "media file missing" in outcome.error

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self, store, make_worker, claimed_job, fake_provider):
        fake_provider.transcribe_delay = 5.0
        job = await claimed_job()

        outcome = await make_worker(fake_provider, job_timeout=0.05).run(job)

        assert outcome.status == JobStatus.FAILED
        assert outcome.error == "job timed out after 0.05s"
        assert (await store.get_job("l1")).status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_invalid_segments_fail_job(
        self, make_worker, claimed_job, fake_provider
    ):
        fake_provider.result = TranscriptionResult(
            text="oops", segments=[Segment(start=5.0, end=1.0, text="oops")]
        )
        job = await claimed_job()

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.FAILED
        assert "invalid segments" in outcome.error

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(
        self, make_worker, claimed_job, fake_provider
    ):
        fake_provider.transcribe_error = RuntimeError("bad state")
        job = await claimed_job()

        outcome = await make_worker(fake_provider).run(job)

        assert outcome.status == JobStatus.FAILED
        assert outcome.error == "internal error: RuntimeError: bad state"


class TestInterruptions:
    @pytest.mark.asyncio
    async def test_cancel_while_running_discards_result(
        self, store, make_worker, claimed_job, fake_provider, connection_pool
    ):
        fake_provider.block = asyncio.Event()
        job = await claimed_job()
        task = asyncio.create_task(make_worker(fake_provider).run(job))

        await _wait_for(lambda: fake_provider.transcribed)
        assert await store.cancel("l1")
        fake_provider.block.set()

        assert await task is None
        assert (await store.get_job("l1")).status == JobStatus.IDLE
        with connection_pool.read_connection() as conn:
            assert get_lesson(conn, "l1").transcription is None

    @pytest.mark.asyncio
    async def test_task_cancellation_releases_claim(
        self, store, make_worker, claimed_job, fake_provider
    ):
        fake_provider.block = asyncio.Event()
        job = await claimed_job()
        task = asyncio.create_task(make_worker(fake_provider).run(job))

        await _wait_for(lambda: fake_provider.transcribed)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        released = await store.get_job("l1")
        assert released.status == JobStatus.PENDING
        assert released.attempt_count == job.attempt_count

    @pytest.mark.asyncio
    async def test_stale_attempt_does_not_finalize(
        self, store, make_worker, claimed_job, fake_provider
    ):
        """A worker whose job was reset and reclaimed leaves the new claim alone."""
        fake_provider.block = asyncio.Event()
        job = await claimed_job()
        task = asyncio.create_task(make_worker(fake_provider).run(job))

        await _wait_for(lambda: fake_provider.transcribed)
        assert await store.reset("l1", force=True)
        reclaimed = await store.claim("l1")
        fake_provider.block.set()

        assert await task is None
        current = await store.get_job("l1")
        assert current.status == JobStatus.PROCESSING
        assert current.attempt_count == reclaimed.attempt_count


def test_result_ref_format():
    assert result_ref_for("abc") == "lesson:abc/transcription"
