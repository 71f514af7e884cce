"""CLI module for Lesson Media Queue."""

import atexit
import logging
import sqlite3
from pathlib import Path

import click

from lmq.config import ConfigFileError, LMQConfig, get_config
from lmq.db.connection import open_connection
from lmq.db.schema import SchemaVersionError, initialize_database

_db_conn: sqlite3.Connection | None = None
_logging_configured: bool = False
_atexit_registered: bool = False

logger = logging.getLogger(__name__)

# Subcommands that manage their own database access
_NO_SHARED_CONNECTION = frozenset({"serve"})


def _cleanup_db_connection() -> None:
    """Close the shared CLI connection on exit."""
    global _db_conn
    if _db_conn is not None:
        try:
            _db_conn.close()
        except sqlite3.Error:  # nosec B110 - nothing useful to do at exit
            pass
        _db_conn = None


def _get_db_connection(db_path: Path) -> sqlite3.Connection | None:
    """Get the connection shared by CLI subcommands.

    The CLI runs one command and exits, so a module-level connection with
    an atexit close is enough. The schema is created on first use.

    Returns:
        Database connection or None if it can't be opened.
    """
    global _db_conn, _atexit_registered

    if _db_conn is not None:
        return _db_conn

    try:
        conn = open_connection(db_path)
        initialize_database(conn)
    except SchemaVersionError as e:
        raise click.ClickException(str(e)) from e
    except (sqlite3.Error, OSError) as e:
        logger.warning("Failed to open database %s: %s", db_path, e)
        return None

    _db_conn = conn
    if not _atexit_registered:
        atexit.register(_cleanup_db_connection)
        _atexit_registered = True
    return conn


def _configure_logging(
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging once per process from config plus CLI options."""
    global _logging_configured
    if _logging_configured:
        return

    from lmq.config.logging_factory import configure_logging_from_cli

    configure_logging_from_cli(
        config_path=config_path,
        level=log_level,
        file=log_file,
        format="json" if log_json else None,
    )
    _logging_configured = True


def _load_config(config_path: Path | None, database: Path | None) -> LMQConfig:
    try:
        return get_config(config_path=config_path, database_path=database, strict=True)
    except ConfigFileError as e:
        raise click.ClickException(str(e)) from e
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@click.group()
@click.version_option(package_name="lesson-media-queue")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.lmq/config.toml).",
)
@click.option(
    "--database",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the queue database (default: ~/.lmq/queue.db).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    database: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Lesson Media Queue - background transcription for lesson media."""
    ctx.ensure_object(dict)

    config = _load_config(config_path, database)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path

    _configure_logging(config_path, log_level, log_file, log_json)

    # Preserve a connection passed in by tests
    if "db_conn" not in ctx.obj and ctx.invoked_subcommand not in _NO_SHARED_CONNECTION:
        ctx.obj["db_conn"] = _get_db_connection(config.storage.database_path)


# Defer import to avoid circular dependency
def _register_commands():
    from lmq.cli.db import db_group
    from lmq.cli.jobs import jobs_group
    from lmq.cli.serve import serve_command

    main.add_command(db_group)
    main.add_command(jobs_group)
    main.add_command(serve_command)


_register_commands()
