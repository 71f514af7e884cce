"""Row mapping helpers shared by the query modules."""

import sqlite3

from lmq.db.types import Job, JobStatus, JobSummary, Lesson

JOB_COLUMNS = """
    entity_id, status, attempt_count, last_error, result_ref,
    created_at, updated_at, claimed_at, worker_id
"""

LESSON_COLUMNS = """
    id, course_id, title, content_type, content_url,
    transcription, summary, updated_at
"""


def _row_to_job(row: sqlite3.Row) -> Job:
    """Convert a database row to a Job object.

    Args:
        row: sqlite3.Row from a SELECT of JOB_COLUMNS on the jobs table.

    Returns:
        Job instance populated from the row.
    """
    return Job(
        entity_id=row["entity_id"],
        status=JobStatus(row["status"]),
        attempt_count=row["attempt_count"],
        last_error=row["last_error"],
        result_ref=row["result_ref"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        claimed_at=row["claimed_at"],
        worker_id=row["worker_id"],
    )


def _row_to_job_summary(row: sqlite3.Row) -> JobSummary:
    return JobSummary(
        entity_id=row["entity_id"],
        title=row["title"],
        course_title=row["course_title"],
        status=JobStatus(row["status"]),
        attempt_count=row["attempt_count"],
        last_error=row["last_error"],
        updated_at=row["updated_at"],
    )


def _row_to_lesson(row: sqlite3.Row) -> Lesson:
    return Lesson(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        content_type=row["content_type"],
        content_url=row["content_url"],
        transcription=row["transcription"],
        summary=row["summary"],
        updated_at=row["updated_at"],
    )
