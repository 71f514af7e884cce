"""Database schema definition for Lesson Media Queue.

This module contains the schema DDL and schema creation logic. The jobs
table is the queue itself; courses and lessons hold only the fields the
transcription pipeline reads and writes.
"""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS lessons (
    id TEXT PRIMARY KEY,
    course_id TEXT,
    title TEXT NOT NULL,
    content_type TEXT,          -- 'video', 'audio', 'text', ...
    content_url TEXT,           -- '/assets/<name>'
    transcription TEXT,         -- JSON: {"en": ..., "es": ..., "cues": [...]}
    summary TEXT,
    updated_at TEXT NOT NULL,   -- ISO 8601 UTC timestamp
    FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_lessons_course ON lessons(course_id);

-- One row per lesson that ever requested processing. Keyed by lesson id
-- and never deleted; dismissal sets status back to 'idle'.
CREATE TABLE IF NOT EXISTS jobs (
    entity_id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'pending',
    attempt_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    result_ref TEXT,

    -- Timing (ISO 8601 UTC)
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    claimed_at TEXT,

    -- Claimer ('<hostname>:<pid>')
    worker_id TEXT,

    CONSTRAINT valid_status CHECK (
        status IN ('idle', 'pending', 'processing', 'completed', 'failed')
    ),
    CONSTRAINT valid_attempt_count CHECK (attempt_count >= 0)
);

CREATE INDEX IF NOT EXISTS idx_jobs_status_updated ON jobs(status, updated_at);
CREATE INDEX IF NOT EXISTS idx_jobs_claimed ON jobs(status, claimed_at);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)

    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() commits implicitly and the INSERT above opens a new
    # implicit transaction; leaving it open would break BEGIN IMMEDIATE in
    # the queue operations.
    conn.commit()
