"""CLI commands for database management."""

import click

from lmq.config import LMQConfig
from lmq.db.schema import SCHEMA_VERSION, get_schema_version


@click.group("db")
def db_group() -> None:
    """Manage the queue database."""
    pass


@db_group.command("init")
@click.pass_context
def init_command(ctx: click.Context) -> None:
    """Create the database schema if it doesn't exist.

    Safe to run repeatedly; an up-to-date database is left unchanged.
    """
    conn = ctx.obj.get("db_conn")
    if conn is None:
        raise click.ClickException("Failed to connect to database.")

    config: LMQConfig = ctx.obj["config"]
    version = get_schema_version(conn)
    click.echo(f"Database: {config.storage.database_path}")
    click.echo(f"Schema version: {version} (supported: {SCHEMA_VERSION})")
