"""Job read queries for Lesson Media Queue.

State-changing job operations live in lmq.jobs.queue, where every
transition is a conditional update. This module only reads.
"""

import sqlite3

from lmq.db.types import ATTENTION_STATUSES, Job, JobStatus, JobSummary

from .helpers import JOB_COLUMNS, _row_to_job, _row_to_job_summary


def get_job(conn: sqlite3.Connection, entity_id: str) -> Job | None:
    """Get a job by its owning lesson id.

    Args:
        conn: Database connection.
        entity_id: Owning lesson id.

    Returns:
        Job if found, None otherwise.
    """
    cursor = conn.execute(
        f"SELECT {JOB_COLUMNS} FROM jobs WHERE entity_id = ?",
        (entity_id,),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return _row_to_job(row)


def get_jobs_filtered(
    conn: sqlite3.Connection,
    *,
    status: JobStatus | None = None,
    limit: int | None = None,
) -> list[Job]:
    """Get jobs, newest update first.

    Args:
        conn: Database connection.
        status: Only return jobs in this status.
        limit: Maximum number of jobs to return.

    Returns:
        List of Job objects.
    """
    query = f"SELECT {JOB_COLUMNS} FROM jobs"
    params: list = []
    if status is not None:
        query += " WHERE status = ?"
        params.append(status.value)
    query += " ORDER BY updated_at DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    cursor = conn.execute(query, params)
    return [_row_to_job(row) for row in cursor.fetchall()]


def get_active_jobs(
    conn: sqlite3.Connection,
    statuses: tuple[JobStatus, ...] = ATTENTION_STATUSES,
) -> list[JobSummary]:
    """Get jobs needing attention, joined with lesson and course titles.

    Jobs whose lesson row is missing are still returned, with null titles.

    Args:
        conn: Database connection.
        statuses: Statuses to include. Defaults to pending, processing
            and failed.

    Returns:
        List of JobSummary, most recently updated first.
    """
    placeholders = ", ".join("?" for _ in statuses)
    cursor = conn.execute(
        f"""
        SELECT j.entity_id, l.title, c.title AS course_title,
               j.status, j.attempt_count, j.last_error, j.updated_at
        FROM jobs j
        LEFT JOIN lessons l ON l.id = j.entity_id
        LEFT JOIN courses c ON c.id = l.course_id
        WHERE j.status IN ({placeholders})
        ORDER BY j.updated_at DESC
        """,
        tuple(s.value for s in statuses),
    )
    return [_row_to_job_summary(row) for row in cursor.fetchall()]
