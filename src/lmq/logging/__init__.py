"""Structured logging module for Lesson Media Queue.

Provides configurable logging with JSON format support and file rotation,
plus job context tagging for worker tasks.
"""

from lmq.logging.config import configure_logging
from lmq.logging.context import (
    JobContextFilter,
    clear_job_context,
    get_job_context,
    job_context,
    set_job_context,
)
from lmq.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "JobContextFilter",
    "clear_job_context",
    "configure_logging",
    "get_job_context",
    "job_context",
    "set_job_context",
]
