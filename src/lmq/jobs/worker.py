"""Transcription worker: runs one claimed job to a terminal status.

Pipeline, strictly sequential:
1. Resolve the lesson's media (failure -> failed, "source unavailable")
2. Transcribe with the provider (failure -> failed, provider error)
3. Store the transcript on the lesson (failure -> failed)
4. Summarize the transcript (failure is logged, job still completes)
5. Finalize as completed

Steps 1 and 2 run under the per-job deadline. The summary has its own
timeout and never turns a stored transcript into a failure. Between steps
the worker re-checks that the job is still processing for its attempt and
stops quietly if it was cancelled or reset in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from pydantic import ValidationError

from lmq.db.json_schemas import TranscriptPayload
from lmq.db.types import Job, JobOutcome
from lmq.jobs.exceptions import ClaimLostError, SourceUnavailableError
from lmq.jobs.source import MediaSourceResolver
from lmq.jobs.store import JobStore
from lmq.logging import job_context
from lmq.provider import ProviderClient, ProviderError, TranscriptionResult

logger = logging.getLogger(__name__)

DEFAULT_JOB_TIMEOUT = 900.0  # 15 minutes
DEFAULT_SUMMARY_TIMEOUT = 300.0


def result_ref_for(entity_id: str) -> str:
    """Handle recorded on a completed job pointing at its stored transcript."""
    return f"lesson:{entity_id}/transcription"


class _StepFailed(Exception):
    """A pipeline step failed; the message becomes the job's last_error."""


class TranscriptionWorker:
    """Executes the transcription pipeline for claimed jobs.

    One instance is shared by all worker tasks in a process; it holds no
    per-job state.
    """

    def __init__(
        self,
        store: JobStore,
        provider: ProviderClient,
        resolver: MediaSourceResolver,
        *,
        job_timeout: float = DEFAULT_JOB_TIMEOUT,
        summary_timeout: float = DEFAULT_SUMMARY_TIMEOUT,
        summarize: bool = True,
    ) -> None:
        self.store = store
        self.provider = provider
        self.resolver = resolver
        self.job_timeout = job_timeout
        self.summary_timeout = summary_timeout
        self.summarize = summarize

    async def run(self, job: Job) -> JobOutcome | None:
        """Process a job the caller has already claimed.

        Args:
            job: The claimed job; its attempt_count identifies the claim.

        Returns:
            The outcome that was finalized, or None if the claim was lost
            and nothing was finalized.
        """
        entity_id = job.entity_id
        attempt = job.attempt_count

        with job_context(entity_id, attempt):
            logger.info("Starting job (attempt %d)", attempt)
            try:
                outcome = await self._pipeline(job)
            except _StepFailed as e:
                outcome = JobOutcome.failed(str(e))
            except ClaimLostError:
                logger.info("Job was cancelled or reset while running, stopping")
                return None
            except asyncio.CancelledError:
                await self._release_after_cancel(entity_id, attempt)
                raise
            except Exception as e:
                logger.exception("Unexpected error while processing job")
                outcome = JobOutcome.failed(f"internal error: {type(e).__name__}: {e}")

            finalized = await self.store.finalize(entity_id, outcome, attempt)
            if not finalized:
                return None

            if outcome.error:
                logger.warning("Job failed: %s", outcome.error)
            else:
                logger.info("Job completed")
            return outcome

    async def _release_after_cancel(self, entity_id: str, attempt: int) -> None:
        try:
            if await self.store.release(entity_id, attempt):
                logger.info("Worker cancelled, job returned to pending")
        except sqlite3.Error as e:
            logger.error("Could not release cancelled job: %s", e)

    async def _ensure_claim(self, job: Job) -> None:
        if not await self.store.holds_claim(job.entity_id, job.attempt_count):
            raise ClaimLostError(job.entity_id, job.attempt_count)

    async def _pipeline(self, job: Job) -> JobOutcome:
        entity_id = job.entity_id

        try:
            result, payload = await asyncio.wait_for(
                self._transcribe(job), timeout=self.job_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Job exceeded deadline of %gs", self.job_timeout)
            raise _StepFailed(f"job timed out after {self.job_timeout:g}s") from None

        await self._ensure_claim(job)

        # 3. Persist
        try:
            saved = await self.store.save_transcription(
                entity_id, payload.model_dump_json()
            )
        except sqlite3.Error as e:
            logger.error("Storing transcription failed: %s", e)
            raise _StepFailed(f"could not store transcription: {e}") from e
        if not saved:
            raise _StepFailed("could not store transcription: lesson not found")

        logger.info(
            "Stored transcription (%d chars, %d cue(s))",
            len(payload.en),
            len(payload.cues),
        )

        # 4. Summary (best effort)
        if self.summarize and result.text.strip():
            await self._ensure_claim(job)
            await self._summarize(entity_id, result.text)

        # 5. Done
        return JobOutcome.completed(result_ref_for(entity_id))

    async def _transcribe(
        self, job: Job
    ) -> tuple[TranscriptionResult, TranscriptPayload]:
        entity_id = job.entity_id

        # 1. Source
        lesson = await self.store.get_lesson(entity_id)
        try:
            artifact = await asyncio.to_thread(self.resolver.resolve, entity_id, lesson)
        except SourceUnavailableError as e:
            raise _StepFailed(str(e)) from e

        await self._ensure_claim(job)

        # 2. Transcription
        try:
            result = await self.provider.transcribe(artifact)
        except ProviderError as e:
            raise _StepFailed(f"transcription failed: {e}") from e

        try:
            payload = result.to_payload()
        except ValidationError as e:
            raise _StepFailed(
                f"transcription failed: invalid segments ({e.error_count()} error(s))"
            ) from e
        return result, payload

    async def _summarize(self, entity_id: str, text: str) -> None:
        try:
            summary = await asyncio.wait_for(
                self.provider.summarize(text), timeout=self.summary_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Summary skipped, provider did not answer within %gs",
                self.summary_timeout,
            )
            return
        except ProviderError as e:
            logger.warning("Summary skipped, provider failed: %s", e)
            return

        try:
            await self.store.save_summary(entity_id, summary)
        except sqlite3.Error as e:
            logger.warning("Summary skipped, could not store it: %s", e)
            return
        logger.info("Stored summary (%d chars)", len(summary))
