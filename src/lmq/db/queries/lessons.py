"""Lesson and course queries used by the transcription pipeline.

This is the narrow slice of the content platform the queue needs: read a
lesson's media reference, write back its transcription and summary.
"""

import sqlite3
from datetime import datetime, timezone

from lmq.db.types import Course, Lesson

from .helpers import LESSON_COLUMNS, _row_to_lesson


def insert_course(conn: sqlite3.Connection, course: Course) -> str:
    """Insert a course record.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    conn.execute(
        "INSERT INTO courses (id, title) VALUES (?, ?)",
        (course.id, course.title),
    )
    return course.id


def insert_lesson(conn: sqlite3.Connection, lesson: Lesson) -> str:
    """Insert a lesson record.

    Args:
        conn: Database connection.
        lesson: Lesson to insert.

    Returns:
        The id of the inserted lesson.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    conn.execute(
        f"""
        INSERT INTO lessons ({LESSON_COLUMNS})
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            lesson.id,
            lesson.course_id,
            lesson.title,
            lesson.content_type,
            lesson.content_url,
            lesson.transcription,
            lesson.summary,
            lesson.updated_at,
        ),
    )
    return lesson.id


def get_lesson(conn: sqlite3.Connection, lesson_id: str) -> Lesson | None:
    """Get a lesson by id.

    Returns:
        Lesson if found, None otherwise.
    """
    cursor = conn.execute(
        f"SELECT {LESSON_COLUMNS} FROM lessons WHERE id = ?",
        (lesson_id,),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return _row_to_lesson(row)


def lesson_exists(conn: sqlite3.Connection, lesson_id: str) -> bool:
    cursor = conn.execute("SELECT 1 FROM lessons WHERE id = ?", (lesson_id,))
    return cursor.fetchone() is not None


def save_transcription(
    conn: sqlite3.Connection, lesson_id: str, transcription_json: str
) -> bool:
    """Store a transcription payload on a lesson.

    Args:
        conn: Database connection.
        lesson_id: Lesson id.
        transcription_json: Serialized TranscriptPayload.

    Returns:
        True if the lesson was updated, False if it no longer exists.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    now = datetime.now(timezone.utc).isoformat()
    cursor = conn.execute(
        "UPDATE lessons SET transcription = ?, updated_at = ? WHERE id = ?",
        (transcription_json, now, lesson_id),
    )
    return cursor.rowcount > 0


def save_summary(conn: sqlite3.Connection, lesson_id: str, summary: str) -> bool:
    """Store a generated summary on a lesson.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    now = datetime.now(timezone.utc).isoformat()
    cursor = conn.execute(
        "UPDATE lessons SET summary = ?, updated_at = ? WHERE id = ?",
        (summary, now, lesson_id),
    )
    return cursor.rowcount > 0
