"""Type definitions for Lesson Media Queue database records.

State transitions for jobs:
    idle/completed/failed -> pending      (enqueue, operator retry)
    pending -> processing                 (claim, conditional on pending)
    processing -> completed/failed        (finalize, conditional on processing)
    processing -> pending                 (stale recovery, operator forced retry)
    any -> idle                           (operator cancel)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JobStatus(Enum):
    """Status of a lesson's processing job."""

    IDLE = "idle"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.PROCESSING)


# Statuses shown to operators as needing attention
ATTENTION_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.FAILED)


@dataclass
class Job:
    """Database record for jobs table."""

    entity_id: str  # Owning lesson id (natural key)
    status: JobStatus
    attempt_count: int  # Incremented on every claim
    created_at: str  # ISO-8601 UTC
    updated_at: str  # ISO-8601 UTC, last status transition

    last_error: str | None = None  # Set on transition into FAILED
    result_ref: str | None = None  # Handle to the persisted transcription
    claimed_at: str | None = None  # ISO-8601 UTC, set by claim
    worker_id: str | None = None  # '<hostname>:<pid>' of the claimer


@dataclass
class JobSummary:
    """Job joined with the lesson and course it belongs to, for listings."""

    entity_id: str
    title: str | None
    course_title: str | None
    status: JobStatus
    attempt_count: int
    last_error: str | None
    updated_at: str

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "title": self.title,
            "course_title": self.course_title,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "last_error": self.last_error,
            "updated_at": self.updated_at,
        }


@dataclass
class Course:
    """Database record for courses table."""

    id: str
    title: str


@dataclass
class Lesson:
    """Database record for lessons table (pipeline fields only)."""

    id: str
    title: str
    updated_at: str
    course_id: str | None = None
    content_type: str | None = None  # 'video', 'audio', ...
    content_url: str | None = None  # '/assets/<name>'
    transcription: str | None = None  # JSON payload, see TranscriptPayload
    summary: str | None = None


@dataclass(frozen=True)
class JobOutcome:
    """Result a worker reports when finalizing a job.

    Use the completed() and failed() constructors rather than building
    instances directly.
    """

    status: JobStatus
    result_ref: str | None = None
    error: str | None = None

    @classmethod
    def completed(cls, result_ref: str) -> JobOutcome:
        return cls(status=JobStatus.COMPLETED, result_ref=result_ref)

    @classmethod
    def failed(cls, error: str) -> JobOutcome:
        return cls(status=JobStatus.FAILED, error=error)
