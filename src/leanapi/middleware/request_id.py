"""Request id middleware.

Reuses an incoming ``X-Request-Id`` or generates one, exposes it through
``request_id_var`` for log records, logs the request and response, and
echoes the id back in the response headers.
"""

import logging
import secrets

from leanapi.context import request_id_var
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next

logger = logging.getLogger("leanapi.request")

HEADER = "X-Request-Id"


def generate_request_id() -> str:
    """Two groups of 8 hex characters, e.g. ``"3f9a0c1e-77b2d4a0"``."""
    return f"{secrets.token_hex(4)}-{secrets.token_hex(4)}"


class RequestIdMiddleware:
    """Assign and propagate a request correlation id."""

    __slots__ = ()

    async def __call__(self, request: Request, next: Next) -> Response:
        request_id = (request.headers.get(HEADER) or "").strip() or generate_request_id()
        token = request_id_var.set(request_id)
        try:
            logger.info(
                "Incoming request",
                extra={
                    "context": {
                        "method": request.method,
                        "path": request.path,
                        "user_agent": request.headers.get("user-agent"),
                    }
                },
            )
            response = await next(request)
            response = response.replacing_header(HEADER, request_id)
            logger.info("Outgoing response", extra={"context": {"status": response.status}})
            return response
        finally:
            request_id_var.reset(token)
