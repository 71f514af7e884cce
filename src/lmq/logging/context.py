"""Job context for structured logging.

Worker tasks set the job they are running in contextvars. asyncio copies
the context into each task, so every record logged while a job runs
carries its entity_id and attempt.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_entity_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "entity_id", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


def set_job_context(entity_id: str, attempt: int | None = None) -> None:
    """Set the current job context.

    Args:
        entity_id: Owning lesson id of the job being processed.
        attempt: The job's attempt_count for this claim.
    """
    _entity_id.set(entity_id)
    _attempt.set(attempt)


def clear_job_context() -> None:
    """Clear the current job context."""
    _entity_id.set(None)
    _attempt.set(None)


@contextmanager
def job_context(
    entity_id: str, attempt: int | None = None
) -> Generator[None, None, None]:
    """Context manager for job processing context.

    Sets job context on entry and restores the previous values on exit.

    Example:
        with job_context("lesson-42", 1):
            logger.info("Transcribing")  # Tagged [job:lesson-4#1]
    """
    old_entity_id = _entity_id.get()
    old_attempt = _attempt.get()
    try:
        set_job_context(entity_id, attempt)
        yield
    finally:
        _entity_id.set(old_entity_id)
        _attempt.set(old_attempt)


def get_job_context() -> tuple[str | None, int | None]:
    """Get current job context as (entity_id, attempt), either may be None."""
    return _entity_id.get(), _attempt.get()


class JobContextFilter(logging.Filter):
    """Logging filter that injects job context into log records.

    Adds entity_id and attempt attributes for JSON output, and a compact
    job_tag such as "[job:3f9c2a1b#2] " for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        entity_id, attempt = get_job_context()

        record.entity_id = entity_id
        record.attempt = attempt

        if entity_id:
            if attempt is not None:
                record.job_tag = f"[job:{entity_id[:8]}#{attempt}] "
            else:
                record.job_tag = f"[job:{entity_id[:8]}] "
        else:
            record.job_tag = ""

        return True  # Never filter out records
