"""Custom exceptions for job processing.

This module provides specific exception types for queue and worker
operations, enabling callers to handle different error conditions
appropriately.
"""


class JobError(Exception):
    """Base exception for job errors.

    All job-related exceptions inherit from this class, allowing callers
    to catch all job errors with a single except clause if desired.
    """


class LessonNotFoundError(JobError):
    """Raised when processing is requested for a lesson that doesn't exist.

    Attributes:
        entity_id: The lesson id that was requested.
    """

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"Lesson {entity_id} not found")


class SourceUnavailableError(JobError):
    """Raised when a lesson's media cannot be resolved to readable bytes.

    Attributes:
        entity_id: The lesson id.
        reason: Why the source could not be resolved.
    """

    def __init__(self, entity_id: str, reason: str) -> None:
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"source unavailable: {reason}")


class ClaimLostError(JobError):
    """Raised inside a worker when its job is no longer processing for its claim.

    Happens when an operator cancels or force-retries the job, or stale
    recovery hands it to another claimer, while the worker is running.
    """

    def __init__(self, entity_id: str, attempt: int) -> None:
        self.entity_id = entity_id
        self.attempt = attempt
        super().__init__(f"Job {entity_id} attempt {attempt} no longer holds its claim")
