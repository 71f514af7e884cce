"""Job display helpers for CLI output.

These are CLI-specific and should not be used in server code.
"""

from lmq.db import JobStatus

# Map JobStatus to terminal color names (for click.style)
JOB_STATUS_COLORS: dict[JobStatus, str] = {
    JobStatus.IDLE: "bright_black",
    JobStatus.PENDING: "yellow",
    JobStatus.PROCESSING: "blue",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}

DEFAULT_STATUS_COLOR = "white"


def get_status_color(status: JobStatus) -> str:
    return JOB_STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


def truncate(text: str | None, width: int) -> str:
    """Shorten text to width characters, marking the cut with '...'."""
    if not text:
        return "-"
    if len(text) <= width:
        return text
    return text[: max(width - 3, 0)] + "..."


def format_timestamp(value: str | None) -> str:
    """Render an ISO-8601 timestamp as 'YYYY-MM-DD HH:MM:SS'."""
    if not value:
        return "-"
    return value[:19].replace("T", " ")
