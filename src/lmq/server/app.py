"""HTTP application for `lmq serve`.

Provides the aiohttp Application with the job API, the health check
endpoint and the background dispatcher that runs alongside it.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import asdict, dataclass

from aiohttp import web

from lmq import __version__
from lmq.config.models import LMQConfig
from lmq.jobs.runtime import QueueRuntime, build_runtime
from lmq.provider import ProviderClient
from lmq.server.api import setup_job_routes
from lmq.server.auth import create_auth_middleware, is_auth_enabled
from lmq.server.lifecycle import ServerLifecycle
from lmq.server.middleware import database_error_middleware

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 5.0  # seconds
DISPATCHER_STOP_TIMEOUT = 5.0  # seconds


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy', 'degraded', or 'unhealthy'."""

    database: str
    """Database connectivity: 'connected' or 'disconnected'."""

    uptime_seconds: float
    version: str
    shutting_down: bool = False

    # Queue metrics
    jobs_pending: int = 0
    jobs_processing: int = 0
    jobs_failed: int = 0
    active_claimers: int = 0
    """Distinct worker ids holding processing claims, across processes."""

    recent_errors: int = 0
    """Jobs failed in the last 24 hours."""

    # This process
    dispatcher_running: bool = False
    active_workers: int = 0
    worker_capacity: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


async def check_database_health(runtime: QueueRuntime | None) -> bool:
    """Check database connectivity without blocking the event loop.

    Times out after HEALTH_CHECK_TIMEOUT seconds.
    """
    if runtime is None:
        return False

    try:
        return await asyncio.wait_for(
            runtime.store.ping(), timeout=HEALTH_CHECK_TIMEOUT
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Database health check timed out after %.1fs", HEALTH_CHECK_TIMEOUT
        )
        return False
    except (sqlite3.Error, RuntimeError) as e:
        logger.warning("Database error during health check: %s", e)
        return False


def create_app(
    config: LMQConfig,
    *,
    provider: ProviderClient | None = None,
    start_dispatcher: bool = True,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        config: Merged configuration; storage.database_path must be set.
        provider: Provider client to use instead of the configured one.
        start_dispatcher: Run the sweep loop in the background while the
            app is up. Tests turn this off and drive sweeps by hand.

    Returns:
        Configured aiohttp Application instance.
    """
    middlewares = []
    auth_token = config.server.auth_token
    if is_auth_enabled(auth_token):
        middlewares.append(create_auth_middleware(auth_token))  # type: ignore[arg-type]
        logger.info("Authentication enabled for API endpoints")
    else:
        logger.warning(
            "Authentication is disabled. Set LMQ_AUTH_TOKEN to protect the API."
        )
    middlewares.append(database_error_middleware)

    app = web.Application(middlewares=middlewares)

    runtime = build_runtime(config, provider=provider)
    app["runtime"] = runtime
    app["job_service"] = runtime.service
    app["lifecycle"] = ServerLifecycle(shutdown_timeout=config.server.shutdown_timeout)
    app["dispatcher_task"] = None

    app.router.add_get("/health", health_handler)
    setup_job_routes(app)

    if start_dispatcher:
        app.on_startup.append(_start_dispatcher)
    app.on_cleanup.append(_stop_dispatcher)
    app.on_cleanup.append(_shutdown_runtime)

    return app


async def _start_dispatcher(app: web.Application) -> None:
    """Start the background sweep loop."""
    runtime: QueueRuntime = app["runtime"]
    app["dispatcher_task"] = asyncio.create_task(
        runtime.dispatcher.run(), name="dispatcher"
    )
    logger.debug("Started dispatcher task")


async def _stop_dispatcher(app: web.Application) -> None:
    """Stop the sweep loop so no new workers are started."""
    runtime: QueueRuntime = app["runtime"]
    runtime.dispatcher.stop()

    task_handle: asyncio.Task | None = app.get("dispatcher_task")
    if task_handle and not task_handle.done():
        try:
            await asyncio.wait_for(task_handle, timeout=DISPATCHER_STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Dispatcher did not stop in time, cancelling")
            task_handle.cancel()
            try:
                await task_handle
            except asyncio.CancelledError:
                pass

    logger.debug("Stopped dispatcher task")


async def _shutdown_runtime(app: web.Application) -> None:
    """Give in-flight workers the shutdown grace period, then clean up."""
    runtime: QueueRuntime = app["runtime"]
    lifecycle: ServerLifecycle = app["lifecycle"]
    lifecycle.initiate_shutdown()

    cancelled = await runtime.shutdown(timeout=lifecycle.shutdown_timeout)
    if cancelled:
        logger.warning("%d job(s) returned to pending for another process", cancelled)


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns JSON health status with appropriate HTTP status code:
    - 200: healthy (database connected, not shutting down)
    - 503: degraded/unhealthy (database disconnected or shutting down)
    """
    lifecycle: ServerLifecycle | None = request.app.get("lifecycle")
    runtime: QueueRuntime | None = request.app.get("runtime")

    db_connected = await check_database_health(runtime)
    shutting_down = lifecycle.is_shutting_down if lifecycle else False

    metrics: dict[str, int] = {}
    if db_connected and runtime is not None:
        try:
            metrics = await runtime.store.health_metrics()
        except sqlite3.Error as e:
            logger.warning("Failed to read queue metrics: %s", e)

    if shutting_down:
        status = "degraded"
    elif not db_connected:
        status = "unhealthy"
    else:
        status = "healthy"

    health = HealthStatus(
        status=status,
        database="connected" if db_connected else "disconnected",
        uptime_seconds=round(lifecycle.uptime_seconds, 1) if lifecycle else 0.0,
        version=__version__,
        shutting_down=shutting_down,
        jobs_pending=metrics.get("jobs_pending", 0),
        jobs_processing=metrics.get("jobs_processing", 0),
        jobs_failed=metrics.get("jobs_failed", 0),
        active_claimers=metrics.get("active_claimers", 0),
        recent_errors=metrics.get("recent_errors", 0),
        dispatcher_running=runtime.dispatcher.is_running if runtime else False,
        active_workers=runtime.worker_pool.active_count if runtime else 0,
        worker_capacity=runtime.worker_pool.max_workers if runtime else 0,
    )

    http_status = 200 if status == "healthy" else 503
    return web.json_response(health.to_dict(), status=http_status)
