"""Database connection management for Lesson Media Queue."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

# PRAGMAs applied to every connection. WAL lets readers proceed while one
# writer holds the lock, which is what the claim protocol relies on.
_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA busy_timeout = 10000",
    "PRAGMA temp_store = MEMORY",
)


def ensure_db_directory(db_path: Path) -> None:
    """Ensure the database directory exists, creating it if necessary."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    for pragma in _PRAGMAS:
        conn.execute(pragma)
    conn.row_factory = sqlite3.Row


def open_connection(db_path: Path, timeout: float = 30.0) -> sqlite3.Connection:
    """Open a connection with the standard PRAGMAs. Caller must close it."""
    ensure_db_directory(db_path)
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    _apply_pragmas(conn)
    return conn


class DatabaseLockedError(Exception):
    """Raised when the database is locked and cannot be accessed."""

    pass


def is_lock_error(error: sqlite3.OperationalError) -> bool:
    """Return True if an OperationalError was caused by lock contention."""
    message = str(error).casefold()
    return "locked" in message or "busy" in message


class DaemonConnectionPool:
    """Thread-safe connection pool for the queue server.

    Reads get a fresh connection each time so they never wait on the
    write lock. Writes share one connection guarded by a lock, so at most
    one write is in progress per process; cross-process exclusion comes
    from SQLite's own locking.
    """

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        """Initialize the connection pool.

        Args:
            db_path: Path to SQLite database file.
            timeout: Connection timeout in seconds.
        """
        self.db_path = db_path
        self.timeout = timeout
        self._write_conn: sqlite3.Connection | None = None
        self._write_lock = threading.Lock()
        self._closed = False
        self._closed_lock = threading.Lock()

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout,
            check_same_thread=False,
        )
        _apply_pragmas(conn)
        return conn

    def _check_open(self) -> None:
        with self._closed_lock:
            if self._closed:
                raise RuntimeError("Connection pool is closed")

    def _get_or_create_write_connection(self) -> sqlite3.Connection:
        """Get the shared write connection, creating if needed.

        Must be called with _write_lock held. A cached connection that no
        longer answers is replaced.
        """
        self._check_open()

        if self._write_conn is None:
            self._write_conn = self._create_connection()
        else:
            try:
                self._write_conn.execute("SELECT 1")
            except (sqlite3.ProgrammingError, sqlite3.OperationalError) as e:
                logger.warning("Cached connection is invalid (%s), creating new", e)
                old_conn = self._write_conn
                self._write_conn = None
                try:
                    old_conn.close()
                except sqlite3.Error:  # nosec B110 - best-effort cleanup
                    pass
                self._write_conn = self._create_connection()

        return self._write_conn

    def get_connection(self) -> sqlite3.Connection:
        """Get the shared write connection, creating if needed.

        Raises:
            RuntimeError: If the pool has been closed.
        """
        with self._write_lock:
            return self._get_or_create_write_connection()

    @contextmanager
    def read_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a read-only connection (new connection per call).

        Yields:
            A fresh SQLite connection for reading.

        Raises:
            RuntimeError: If the pool has been closed.
        """
        self._check_open()
        conn = self._create_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def write_connection(self) -> Iterator[sqlite3.Connection]:
        """Hold the write lock and yield the shared write connection.

        Unlike transaction(), no transaction is opened: the queue operations
        run their own BEGIN IMMEDIATE/COMMIT, and this only serializes them
        within the process.

        Yields:
            The shared SQLite connection.
        """
        with self._write_lock:
            conn = self._get_or_create_write_connection()
            try:
                yield conn
            finally:
                if conn.in_transaction:
                    logger.warning("Rolling back transaction left open on write connection")
                    conn.rollback()

    @contextmanager
    def transaction(self, timeout: float | None = None) -> Iterator[sqlite3.Connection]:
        """Context manager for atomic database transactions.

        Commits on success, rolls back on exception. Uses BEGIN IMMEDIATE
        so the write lock is taken up front. Transactions that take longer
        than 80% of the timeout are logged as slow.

        Do NOT call functions that commit on their own inside the block.

        Args:
            timeout: Optional threshold for slow transaction warnings.
                Defaults to the pool's configured timeout.

        Example:
            with pool.transaction() as conn:
                conn.execute("INSERT INTO ...", (...))
                conn.execute("UPDATE ...", (...))

        Yields:
            The database connection for direct query execution.
        """
        effective_timeout = timeout if timeout is not None else self.timeout
        start_time = time.monotonic()

        with self._write_lock:
            conn = self._get_or_create_write_connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
            finally:
                elapsed = time.monotonic() - start_time
                if elapsed > effective_timeout * 0.8:
                    logger.warning(
                        "Slow transaction: %.2fs (threshold: %.1fs)",
                        elapsed,
                        effective_timeout,
                    )

    def close(self) -> None:
        """Close the connection pool.

        After closing, any attempt to get a connection raises RuntimeError.
        """
        with self._write_lock:
            if self._write_conn is not None:
                try:
                    self._write_conn.close()
                except sqlite3.Error as e:
                    logger.error("Error closing connection pool: %s", e)
                    self._write_conn = None
                    with self._closed_lock:
                        self._closed = True
                    raise
                self._write_conn = None
            with self._closed_lock:
                self._closed = True

    def __del__(self) -> None:
        # getattr defaults cover partially initialized objects
        if not getattr(self, "_closed", True) and getattr(self, "_write_conn", None):
            logger.warning("DaemonConnectionPool was not properly closed")
            try:
                self._write_conn.close()
            except Exception:  # nosec B110 - best effort cleanup in destructor
                pass

    @property
    def is_closed(self) -> bool:
        """Check if the pool has been closed."""
        with self._closed_lock:
            return self._closed
