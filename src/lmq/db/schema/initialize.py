"""Database initialization for Lesson Media Queue."""

import logging
import sqlite3

from .definition import SCHEMA_VERSION, create_schema
from .version import get_schema_version

logger = logging.getLogger(__name__)


class SchemaVersionError(Exception):
    """Raised when the database was written by a newer schema version."""

    def __init__(self, found: int, supported: int) -> None:
        self.found = found
        self.supported = supported
        super().__init__(
            f"Database schema version {found} is newer than supported "
            f"version {supported}"
        )


def initialize_database(conn: sqlite3.Connection) -> None:
    """Initialize the database with schema, creating tables if needed.

    Args:
        conn: An open database connection.

    Raises:
        SchemaVersionError: If the database schema is newer than this code.
    """
    current_version = get_schema_version(conn)

    if current_version is None:
        logger.debug("Creating schema version %d", SCHEMA_VERSION)
        create_schema(conn)
    elif current_version > SCHEMA_VERSION:
        raise SchemaVersionError(current_version, SCHEMA_VERSION)
    else:
        # Idempotent: picks up any indexes added without a version bump
        create_schema(conn)
