"""Query functions for Lesson Media Queue database tables.

Module organization:
- helpers.py: Column lists and row mapping functions
- jobs.py: Job read queries
- lessons.py: Lesson/course reads and transcription/summary writes
"""

from .jobs import get_active_jobs, get_job, get_jobs_filtered
from .lessons import (
    get_lesson,
    insert_course,
    insert_lesson,
    lesson_exists,
    save_summary,
    save_transcription,
)

__all__ = [
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
