"""Request guards shared by the API handlers."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable

from aiohttp import web

from lmq.db.connection import DatabaseLockedError
from lmq.server.api.errors import (
    DATABASE_UNAVAILABLE,
    INVALID_ID_FORMAT,
    SHUTTING_DOWN,
    api_error,
)

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

# Lesson ids are UUIDs or slugs issued by the content platform
ENTITY_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,127}$")


def is_valid_entity_id(value: str) -> bool:
    return ENTITY_ID_PATTERN.fullmatch(value) is not None


def shutdown_check_middleware(handler: Handler) -> Handler:
    """Decorator that returns 503 while the server is shutting down.

    Usage:
        @shutdown_check_middleware
        async def my_api_handler(request: web.Request) -> web.Response:
            ...
    """

    async def wrapper(request: web.Request) -> web.StreamResponse:
        lifecycle = request.app.get("lifecycle")
        if lifecycle and lifecycle.is_shutting_down:
            return api_error(
                "Service is shutting down", code=SHUTTING_DOWN, status=503
            )
        return await handler(request)

    return wrapper


def entity_id_required(handler: Handler) -> Handler:
    """Decorator that validates {entity_id} and stores it on the request.

    Handlers read the validated value from request["entity_id"].
    """

    async def wrapper(request: web.Request) -> web.StreamResponse:
        entity_id = request.match_info.get("entity_id", "")
        if not is_valid_entity_id(entity_id):
            return api_error("Invalid lesson id format", code=INVALID_ID_FORMAT)
        request["entity_id"] = entity_id
        return await handler(request)

    return wrapper


@web.middleware
async def database_error_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    """Translate lock timeouts into 503 so clients know to retry."""
    try:
        return await handler(request)
    except DatabaseLockedError as e:
        logger.warning("Database busy handling %s %s: %s", request.method, request.path, e)
        return api_error(
            "Database is busy, retry shortly",
            code=DATABASE_UNAVAILABLE,
            status=503,
        )
