"""Job store operations for Lesson Media Queue.

The jobs table is the queue. Every status transition is a conditional
UPDATE, so several processes can share one database file without any
in-memory locking:
- Enqueue is idempotent while a job is pending or processing
- Claims flip pending -> processing inside BEGIN IMMEDIATE transactions
- Finalize only applies to a job still processing for the same claim
- Stale processing jobs are returned to pending for another claimer
"""

import logging
import os
import socket
import sqlite3
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from lmq.db.connection import DatabaseLockedError, is_lock_error
from lmq.db.queries import get_job
from lmq.db.types import Job, JobOutcome, JobStatus

logger = logging.getLogger(__name__)

# Processing jobs claimed longer ago than this are considered abandoned
DEFAULT_STALE_TIMEOUT = 1800  # 30 minutes

DEFAULT_BATCH_SIZE = 5


def default_worker_id() -> str:
    """Return the claimer identity for this process ('<hostname>:<pid>')."""
    return f"{socket.gethostname()}:{os.getpid()}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _immediate_transaction(
    conn: sqlite3.Connection, operation: str
) -> Iterator[sqlite3.Connection]:
    """Run a block inside BEGIN IMMEDIATE, committing on success.

    Raises:
        DatabaseLockedError: If the write lock could not be acquired.
        sqlite3.DatabaseError: For any other database failure, after rollback.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.OperationalError as e:
        if is_lock_error(e):
            raise DatabaseLockedError(f"Database is locked during {operation}") from e
        raise

    try:
        yield conn
        conn.execute("COMMIT")
    except sqlite3.DatabaseError as e:
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            pass  # Best effort rollback
        if isinstance(e, sqlite3.OperationalError) and is_lock_error(e):
            raise DatabaseLockedError(f"Database is locked during {operation}") from e
        logger.error("Database error during %s: %s", operation, e)
        raise
    except BaseException:
        conn.execute("ROLLBACK")
        raise


def enqueue_job(conn: sqlite3.Connection, entity_id: str) -> bool:
    """Mark a lesson's job pending, creating the job if needed.

    Jobs in idle, completed or failed move to pending. A job that is
    already pending or processing is left untouched, so repeated requests
    fold into the work already in flight.

    Args:
        conn: Database connection.
        entity_id: Owning lesson id.

    Returns:
        True if the job is now pending because of this call, False if it
        was already pending or processing.

    Raises:
        DatabaseLockedError: If the write lock could not be acquired.
    """
    now = _now()

    with _immediate_transaction(conn, "enqueue"):
        row = conn.execute(
            "SELECT status FROM jobs WHERE entity_id = ?", (entity_id,)
        ).fetchone()

        if row is None:
            conn.execute(
                """
                INSERT INTO jobs (entity_id, status, attempt_count,
                                  created_at, updated_at)
                VALUES (?, 'pending', 0, ?, ?)
                """,
                (entity_id, now, now),
            )
            logger.info("Job %s created as pending", entity_id)
            return True

        current = JobStatus(row[0])
        if current.is_active:
            logger.debug("Job %s already %s, enqueue ignored", entity_id, current.value)
            return False

        conn.execute(
            """
            UPDATE jobs
            SET status = 'pending',
                last_error = NULL,
                claimed_at = NULL,
                worker_id = NULL,
                updated_at = ?
            WHERE entity_id = ? AND status NOT IN ('pending', 'processing')
            """,
            (now, entity_id),
        )
        logger.info("Job %s moved %s -> pending", entity_id, current.value)
        return True


def _claim_ids(
    conn: sqlite3.Connection,
    entity_ids: list[str],
    worker_id: str,
    now: str,
) -> list[Job]:
    """Flip each id from pending to processing. Caller holds the transaction."""
    claimed: list[Job] = []
    for entity_id in entity_ids:
        cursor = conn.execute(
            """
            UPDATE jobs
            SET status = 'processing',
                attempt_count = attempt_count + 1,
                claimed_at = ?,
                worker_id = ?,
                updated_at = ?
            WHERE entity_id = ? AND status = 'pending'
            """,
            (now, worker_id, now, entity_id),
        )
        if cursor.rowcount > 0:
            job = get_job(conn, entity_id)
            if job is not None:
                claimed.append(job)
    return claimed


def claim_batch(
    conn: sqlite3.Connection,
    limit: int = DEFAULT_BATCH_SIZE,
    worker_id: str | None = None,
    exclude: Collection[str] = (),
) -> list[Job]:
    """Atomically claim up to ``limit`` pending jobs, oldest first.

    Uses BEGIN IMMEDIATE so concurrent claimers in any process serialize
    on the database write lock; a job can only be returned to one caller.

    Args:
        conn: Database connection.
        limit: Maximum number of jobs to claim.
        worker_id: Claimer identity (defaults to '<hostname>:<pid>').
        exclude: Entity ids to leave pending, e.g. lessons whose previous
            worker is still running in this process.

    Returns:
        The claimed jobs with their new attempt_count. Empty when nothing
        is pending or the database is busy (caller retries next tick).
    """
    if limit <= 0:
        return []
    if worker_id is None:
        worker_id = default_worker_id()

    now = _now()

    try:
        with _immediate_transaction(conn, "claim"):
            query = "SELECT entity_id FROM jobs WHERE status = 'pending'"
            params: list = []
            if exclude:
                placeholders = ", ".join("?" for _ in exclude)
                query += f" AND entity_id NOT IN ({placeholders})"
                params.extend(exclude)
            query += " ORDER BY updated_at ASC, entity_id ASC LIMIT ?"
            params.append(limit)
            rows = conn.execute(query, params).fetchall()
            claimed = _claim_ids(conn, [row[0] for row in rows], worker_id, now)
    except DatabaseLockedError as e:
        logger.warning("Lock contention while claiming jobs: %s", e)
        return []

    if claimed:
        logger.debug(
            "Claimed %d job(s): %s",
            len(claimed),
            ", ".join(job.entity_id for job in claimed),
        )
    return claimed


def claim_job(
    conn: sqlite3.Connection,
    entity_id: str,
    worker_id: str | None = None,
) -> Job | None:
    """Atomically claim one specific pending job.

    Same conditional transition as claim_batch(), used by the enqueue
    fast path so the request that created the job can start it at once.

    Returns:
        The claimed Job, or None if it was not pending (already claimed by
        a sweep, cancelled) or the database is busy.
    """
    if worker_id is None:
        worker_id = default_worker_id()

    try:
        with _immediate_transaction(conn, "claim"):
            claimed = _claim_ids(conn, [entity_id], worker_id, _now())
    except DatabaseLockedError as e:
        logger.warning("Lock contention while claiming job %s: %s", entity_id, e)
        return None

    return claimed[0] if claimed else None


def finalize_job(
    conn: sqlite3.Connection,
    entity_id: str,
    outcome: JobOutcome,
    attempt: int | None = None,
) -> bool:
    """Record the terminal outcome of a claimed job.

    Applies only while the job is still processing and, when ``attempt``
    is given, still on that claim. A worker finishing after its job was
    cancelled, reset or reclaimed therefore changes nothing.

    Args:
        conn: Database connection.
        entity_id: Owning lesson id.
        outcome: JobOutcome.completed(...) or JobOutcome.failed(...).
        attempt: attempt_count the worker was started with.

    Returns:
        True if the job was finalized, False if the finalize was ignored.
    """
    if not outcome.status.is_terminal:
        raise ValueError(f"Cannot finalize job with status {outcome.status.value}")

    now = _now()
    cursor = conn.execute(
        """
        UPDATE jobs
        SET status = ?,
            result_ref = COALESCE(?, result_ref),
            last_error = ?,
            claimed_at = NULL,
            worker_id = NULL,
            updated_at = ?
        WHERE entity_id = ?
            AND status = 'processing'
            AND (? IS NULL OR attempt_count = ?)
        """,
        (
            outcome.status.value,
            outcome.result_ref,
            outcome.error,
            now,
            entity_id,
            attempt,
            attempt,
        ),
    )
    conn.commit()

    if cursor.rowcount == 0:
        logger.info(
            "Finalize of job %s as %s ignored: no longer processing for attempt %s",
            entity_id,
            outcome.status.value,
            attempt if attempt is not None else "any",
        )
        return False
    return True


def release_claim(conn: sqlite3.Connection, entity_id: str, attempt: int) -> bool:
    """Hand an interrupted job back to pending without a terminal status.

    Used when a worker is cancelled at shutdown, so the job is picked up
    by the next sweep instead of waiting for stale recovery.

    Returns:
        True if the claim was released, False if it was no longer held.
    """
    cursor = conn.execute(
        """
        UPDATE jobs
        SET status = 'pending',
            claimed_at = NULL,
            worker_id = NULL,
            updated_at = ?
        WHERE entity_id = ? AND status = 'processing' AND attempt_count = ?
        """,
        (_now(), entity_id, attempt),
    )
    conn.commit()
    return cursor.rowcount > 0


def holds_claim(conn: sqlite3.Connection, entity_id: str, attempt: int) -> bool:
    """Check whether a job is still processing for the given attempt."""
    cursor = conn.execute(
        """
        SELECT 1 FROM jobs
        WHERE entity_id = ? AND status = 'processing' AND attempt_count = ?
        """,
        (entity_id, attempt),
    )
    return cursor.fetchone() is not None


def cancel_job(conn: sqlite3.Connection, entity_id: str) -> bool:
    """Dismiss a job by setting it idle, whatever its current status.

    A worker already running the job is not interrupted; its finalize
    becomes a no-op.

    Returns:
        True if the job was updated, False if no job exists.
    """
    cursor = conn.execute(
        """
        UPDATE jobs
        SET status = 'idle',
            claimed_at = NULL,
            worker_id = NULL,
            updated_at = ?
        WHERE entity_id = ?
        """,
        (_now(), entity_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def reset_job(conn: sqlite3.Connection, entity_id: str, *, force: bool = False) -> bool:
    """Return a failed job to pending.

    With ``force``, pending and processing jobs are reset as well, which
    releases a claim held by a worker that died without finalizing.
    Completed and idle jobs are never reset here.

    Returns:
        True if the job is now pending, False if it was not resettable.
    """
    statuses = ("failed", "processing", "pending") if force else ("failed",)
    placeholders = ", ".join("?" for _ in statuses)
    cursor = conn.execute(
        f"""
        UPDATE jobs
        SET status = 'pending',
            last_error = NULL,
            claimed_at = NULL,
            worker_id = NULL,
            updated_at = ?
        WHERE entity_id = ? AND status IN ({placeholders})
        """,
        (_now(), entity_id, *statuses),
    )
    conn.commit()
    return cursor.rowcount > 0


def recover_stale_jobs(
    conn: sqlite3.Connection,
    timeout_seconds: int = DEFAULT_STALE_TIMEOUT,
) -> int:
    """Return abandoned processing jobs to pending.

    A job still processing ``timeout_seconds`` after its claim belongs to
    a worker that died or hung. Resetting it lets the next claim pick it
    up; the old worker's finalize no longer matches its attempt.

    Args:
        conn: Database connection.
        timeout_seconds: Claim age after which a job is considered stale.

    Returns:
        Number of jobs recovered.
    """
    cutoff = (
        datetime.now(timezone.utc) - timedelta(seconds=timeout_seconds)
    ).isoformat()

    cursor = conn.execute(
        """
        UPDATE jobs
        SET status = 'pending',
            claimed_at = NULL,
            worker_id = NULL,
            updated_at = ?
        WHERE status = 'processing'
            AND claimed_at IS NOT NULL
            AND claimed_at < ?
        """,
        (_now(), cutoff),
    )
    conn.commit()

    count = cursor.rowcount
    if count > 0:
        logger.warning("Recovered %d stale job(s) claimed before %s", count, cutoff)

    return count


def get_queue_stats(conn: sqlite3.Connection) -> dict[str, int]:
    """Get queue statistics.

    Returns:
        Dictionary with counts per status plus a total.
    """
    cursor = conn.execute(
        """
        SELECT status, COUNT(*) as count
        FROM jobs
        GROUP BY status
        """
    )

    stats = {status.value: 0 for status in JobStatus}
    stats["total"] = 0

    for row in cursor.fetchall():
        stats[row[0]] = row[1]
        stats["total"] += row[1]

    return stats


def get_job_health_metrics(conn: sqlite3.Connection) -> dict[str, int]:
    """Get job metrics for the health endpoint.

    Returns:
        Dict with jobs_pending, jobs_processing, jobs_failed,
        active_claimers and recent_errors (failures in the last 24h).
    """
    queue_stats = get_queue_stats(conn)

    cursor = conn.execute(
        """
        SELECT COUNT(DISTINCT worker_id)
        FROM jobs
        WHERE status = 'processing' AND worker_id IS NOT NULL
        """
    )
    active_claimers = cursor.fetchone()[0] or 0

    cutoff = (datetime.now(timezone.utc) - timedelta(hours=24)).isoformat()
    cursor = conn.execute(
        """
        SELECT COUNT(*) FROM jobs
        WHERE status = 'failed' AND updated_at > ?
        """,
        (cutoff,),
    )
    recent_errors = cursor.fetchone()[0] or 0

    return {
        "jobs_pending": queue_stats["pending"],
        "jobs_processing": queue_stats["processing"],
        "jobs_failed": queue_stats["failed"],
        "active_claimers": active_claimers,
        "recent_errors": recent_errors,
    }
