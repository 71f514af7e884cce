"""CLI serve command.

Runs the HTTP API and the background dispatcher as a long-lived service
suitable for systemd management.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import sys
from pathlib import Path

import click

from lmq.cli.exit_codes import ExitCode
from lmq.config import LMQConfig, get_config, validate_config
from lmq.db.schema import SchemaVersionError
from lmq.server.auth import is_auth_enabled

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "localhost", "::1"})


async def run_server(config: LMQConfig) -> int:
    """Run the server until SIGTERM/SIGINT.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from lmq.server.app import create_app
    from lmq.server.signals import remove_signal_handlers, setup_signal_handlers

    bind = config.server.bind
    port = config.server.port

    app = create_app(config)
    lifecycle = app["lifecycle"]

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    setup_signal_handlers(loop, lifecycle, shutdown_event)

    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info("LMQ server started on http://%s:%d (PID %d)", bind, port, os.getpid())
        logger.info("Health endpoint: http://%s:%d/health", bind, port)
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()

        # Brief pause for in-flight requests
        await asyncio.sleep(0.5)

    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
            return ExitCode.GENERAL_ERROR
        if e.errno == errno.EADDRNOTAVAIL:
            logger.error("Cannot bind to address %s", bind)
            return ExitCode.GENERAL_ERROR
        logger.error("Server error: %s", e)
        return ExitCode.GENERAL_ERROR
    finally:
        remove_signal_handlers(loop)
        # Stops the dispatcher and drains workers (see create_app cleanup)
        await runner.cleanup()
        logger.info("LMQ server stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 127.0.0.1).",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: 8340).",
)
@click.option(
    "--media-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding uploads/ for lesson media.",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    bind: str | None,
    port: int | None,
    media_root: Path | None,
) -> None:
    """Run the job API and dispatcher.

    Lessons are queued with POST /jobs/<lesson-id> and processed in the
    background; GET /health reports queue and worker state. Handles
    graceful shutdown on SIGTERM (from systemd) or SIGINT (Ctrl+C).

    Configuration precedence (highest to lowest):
      1. CLI flags (--bind, --port, --media-root, --database)
      2. Environment variables (LMQ_*)
      3. Config file (--config or ~/.lmq/config.toml)
      4. Default values

    \b
    Examples:
        lmq serve                      # Start with defaults
        lmq serve --port 9000          # Custom port
        lmq --log-json serve           # JSON logging for journald
    """
    base: LMQConfig = ctx.obj["config"]
    try:
        config = get_config(
            config_path=ctx.obj.get("config_path"),
            database_path=base.storage.database_path,
            media_root=media_root,
            server_bind=bind,
            server_port=port,
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(ExitCode.INVALID_ARGUMENTS)

    problems = validate_config(config)
    for problem in problems:
        logger.warning("Configuration: %s", problem)

    if config.server.bind not in LOOPBACK_ADDRESSES:
        logger.warning(
            "Binding to %s exposes the job API to the network", config.server.bind
        )
        if not is_auth_enabled(config.server.auth_token):
            logger.warning(
                "Listening on %s with authentication DISABLED; set LMQ_AUTH_TOKEN",
                config.server.bind,
            )

    if config.server.port < 1024:
        logger.warning("Port %d is privileged and may require root", config.server.port)

    logger.info(
        "Starting LMQ server (bind=%s, port=%d, provider=%s, workers=%d, db=%s)",
        config.server.bind,
        config.server.port,
        config.provider.provider,
        config.dispatcher.max_workers,
        config.storage.database_path,
    )

    try:
        exit_code = asyncio.run(run_server(config))
    except SchemaVersionError as e:
        logger.error("%s", e)
        sys.exit(ExitCode.DATABASE_ERROR)
    except KeyboardInterrupt:
        logger.info("Interrupted before server started")
        sys.exit(ExitCode.INTERRUPTED)
    sys.exit(exit_code)
