"""Shared-token authentication for the job API.

The content platform calls the API with ``Authorization: Bearer <token>``;
operators using curl or a browser can send the same token as the
password of HTTP Basic credentials (any username). The health endpoint is
always open so load balancers can probe it.

Authentication is disabled when no token is configured, which is only
appropriate when the server binds to localhost.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from collections.abc import Awaitable, Callable

from aiohttp import web

from lmq.server.api.errors import api_error

logger = logging.getLogger(__name__)

RequestHandler = Callable[[web.Request], Awaitable[web.StreamResponse]]

UNAUTHORIZED = "UNAUTHORIZED"
PUBLIC_PATHS = frozenset({"/health"})
REALM = "LMQ"


def parse_basic_auth(auth_header: str | None) -> tuple[str, str] | None:
    """Parse an HTTP Basic Authorization header.

    Returns:
        (username, password), or None if the header is missing, malformed,
        or not Basic auth.

    Example:
        >>> parse_basic_auth("Basic dXNlcjpwYXNzd29yZA==")
        ('user', 'password')
        >>> parse_basic_auth("Bearer token123") is None
        True
    """
    if not auth_header or not auth_header.startswith("Basic "):
        return None

    try:
        decoded = base64.b64decode(auth_header[6:], validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None

    # Password may contain colons
    if ":" not in decoded:
        return None
    username, password = decoded.split(":", 1)
    return (username, password)


def extract_token(auth_header: str | None) -> str | None:
    """Pull the shared token out of a Bearer or Basic Authorization header."""
    if not auth_header:
        return None
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    credentials = parse_basic_auth(auth_header)
    if credentials is None:
        return None
    return credentials[1]


def validate_token(provided: str, expected: str) -> bool:
    """Constant-time comparison of the provided and configured tokens."""
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def is_auth_enabled(token: str | None) -> bool:
    """True if a non-blank token is configured."""
    return token is not None and token.strip() != ""


def _unauthorized() -> web.Response:
    response = api_error("Unauthorized", code=UNAUTHORIZED, status=401)
    response.headers["WWW-Authenticate"] = f'Basic realm="{REALM}"'
    return response


def create_auth_middleware(auth_token: str):
    """Create middleware that requires the shared token on non-public paths."""

    @web.middleware
    async def auth_middleware(
        request: web.Request, handler: RequestHandler
    ) -> web.StreamResponse:
        if request.path in PUBLIC_PATHS:
            return await handler(request)

        provided = extract_token(request.headers.get("Authorization"))
        if provided is None or not validate_token(provided, auth_token):
            logger.debug(
                "Rejected unauthenticated %s %s from %s",
                request.method,
                request.path,
                request.remote,
            )
            return _unauthorized()

        return await handler(request)

    return auth_middleware
