"""Server lifecycle state.

Tracks startup time and graceful shutdown progress so request handlers
can refuse new work once shutdown begins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


@dataclass
class ShutdownState:
    """Tracks shutdown progress for graceful termination."""

    initiated: datetime | None = None
    """UTC timestamp when shutdown was initiated, None if not shutting down."""

    timeout_deadline: datetime | None = None
    """UTC timestamp after which remaining workers will be cancelled."""

    @property
    def is_shutting_down(self) -> bool:
        return self.initiated is not None

    @property
    def is_timed_out(self) -> bool:
        """Returns True if the shutdown deadline has passed."""
        if self.timeout_deadline is None:
            return False
        return datetime.now(timezone.utc) >= self.timeout_deadline


@dataclass
class ServerLifecycle:
    """Startup and shutdown state for one `lmq serve` process."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for in-flight workers before cancelling them."""

    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    shutdown_state: ShutdownState = field(default_factory=ShutdownState)

    @property
    def uptime_seconds(self) -> float:
        """Returns seconds since startup."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_shutting_down(self) -> bool:
        return self.shutdown_state.is_shutting_down

    def initiate_shutdown(self) -> None:
        """Begin graceful shutdown. Idempotent."""
        if self.shutdown_state.initiated is not None:
            return

        now = datetime.now(timezone.utc)
        self.shutdown_state.initiated = now
        self.shutdown_state.timeout_deadline = now + timedelta(
            seconds=self.shutdown_timeout
        )
        logger.info(
            "Shutdown initiated, waiting up to %gs for workers", self.shutdown_timeout
        )
