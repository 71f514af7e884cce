"""Database module for Lesson Media Queue.

Module organization:
- connection.py: Connections, the daemon connection pool, lock helpers
- types.py: Enums and dataclasses for database records
- json_schemas.py: Pydantic schemas for JSON columns
- queries/: Read queries and lesson writes
- schema/: Schema creation and version checks

Usage:
    from lmq.db import open_connection, initialize_database, get_job
"""

from .connection import (
    DaemonConnectionPool,
    DatabaseLockedError,
    open_connection,
)
from .queries import (
    get_active_jobs,
    get_job,
    get_jobs_filtered,
    get_lesson,
    insert_course,
    insert_lesson,
    lesson_exists,
    save_summary,
    save_transcription,
)
from .schema import SCHEMA_VERSION, initialize_database
from .types import (
    ATTENTION_STATUSES,
    Course,
    Job,
    JobOutcome,
    JobStatus,
    JobSummary,
    Lesson,
)

__all__ = [
    # Connection
    "DaemonConnectionPool",
    "DatabaseLockedError",
    "open_connection",
    # Schema
    "SCHEMA_VERSION",
    "initialize_database",
    # Types
    "ATTENTION_STATUSES",
    "Course",
    "Job",
    "JobOutcome",
    "JobStatus",
    "JobSummary",
    "Lesson",
    # Queries
    "get_active_jobs",
    "get_job",
    "get_jobs_filtered",
    "get_lesson",
    "insert_course",
    "insert_lesson",
    "lesson_exists",
    "save_summary",
    "save_transcription",
]
