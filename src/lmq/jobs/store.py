"""Async access to the job store for the server process.

SQLite calls block, so each operation runs in a thread via
asyncio.to_thread. Reads open their own connection; writes go through
the pool's shared write connection.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Collection

from lmq.db.connection import DaemonConnectionPool
from lmq.db.queries import (
    get_active_jobs,
    get_job,
    get_lesson,
    lesson_exists,
    save_summary,
    save_transcription,
)
from lmq.db.types import Job, JobOutcome, JobSummary, Lesson
from lmq.jobs import queue


class JobStore:
    """Thin async wrapper around lmq.jobs.queue and the lesson queries."""

    def __init__(
        self,
        pool: DaemonConnectionPool,
        worker_id: str | None = None,
    ) -> None:
        self.pool = pool
        self.worker_id = worker_id or queue.default_worker_id()

    # Writes

    def _write(self, func, *args, **kwargs):
        with self.pool.write_connection() as conn:
            return func(conn, *args, **kwargs)

    async def enqueue(self, entity_id: str) -> bool:
        return await asyncio.to_thread(self._write, queue.enqueue_job, entity_id)

    async def claim_batch(
        self, limit: int, exclude: Collection[str] = ()
    ) -> list[Job]:
        return await asyncio.to_thread(
            self._write, queue.claim_batch, limit, self.worker_id, exclude
        )

    async def claim(self, entity_id: str) -> Job | None:
        return await asyncio.to_thread(
            self._write, queue.claim_job, entity_id, self.worker_id
        )

    async def finalize(
        self, entity_id: str, outcome: JobOutcome, attempt: int | None = None
    ) -> bool:
        return await asyncio.to_thread(
            self._write, queue.finalize_job, entity_id, outcome, attempt
        )

    async def release(self, entity_id: str, attempt: int) -> bool:
        return await asyncio.to_thread(
            self._write, queue.release_claim, entity_id, attempt
        )

    async def cancel(self, entity_id: str) -> bool:
        return await asyncio.to_thread(self._write, queue.cancel_job, entity_id)

    async def reset(self, entity_id: str, *, force: bool = False) -> bool:
        return await asyncio.to_thread(
            self._write, queue.reset_job, entity_id, force=force
        )

    async def recover_stale(self, timeout_seconds: int) -> int:
        return await asyncio.to_thread(
            self._write, queue.recover_stale_jobs, timeout_seconds
        )

    def _save_in_transaction(self, func, entity_id: str, value: str) -> bool:
        with self.pool.transaction() as conn:
            return func(conn, entity_id, value)

    async def save_transcription(self, entity_id: str, payload_json: str) -> bool:
        return await asyncio.to_thread(
            self._save_in_transaction, save_transcription, entity_id, payload_json
        )

    async def save_summary(self, entity_id: str, summary: str) -> bool:
        return await asyncio.to_thread(
            self._save_in_transaction, save_summary, entity_id, summary
        )

    # Reads

    def _read(self, func, *args, **kwargs):
        with self.pool.read_connection() as conn:
            return func(conn, *args, **kwargs)

    async def get_job(self, entity_id: str) -> Job | None:
        return await asyncio.to_thread(self._read, get_job, entity_id)

    async def holds_claim(self, entity_id: str, attempt: int) -> bool:
        return await asyncio.to_thread(
            self._read, queue.holds_claim, entity_id, attempt
        )

    async def list_active(self) -> list[JobSummary]:
        return await asyncio.to_thread(self._read, get_active_jobs)

    async def get_lesson(self, entity_id: str) -> Lesson | None:
        return await asyncio.to_thread(self._read, get_lesson, entity_id)

    async def lesson_exists(self, entity_id: str) -> bool:
        return await asyncio.to_thread(self._read, lesson_exists, entity_id)

    async def health_metrics(self) -> dict[str, int]:
        return await asyncio.to_thread(self._read, queue.get_job_health_metrics)

    async def ping(self) -> bool:
        def _ping(conn: sqlite3.Connection) -> bool:
            conn.execute("SELECT 1")
            return True

        return await asyncio.to_thread(self._read, _ping)
