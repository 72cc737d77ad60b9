"""ASGI handler: the boundary between a server and ``App.dispatch``.

The only component that touches raw ASGI for HTTP requests. It builds a
``Request`` from the scope, awaits the dispatch pipeline, and sends the
result back. It is also the last-resort error boundary: an ``HTTPError``
becomes a problem response with its status, anything else is logged and
becomes a 500 problem.
"""

import logging
from collections.abc import Awaitable, Callable

from leanapi._internal.asgi import Receive, Scope, Send
from leanapi.errors import HTTPError
from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.server.sender import send_response

logger = logging.getLogger("leanapi.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    dispatch: Callable[[Request], Awaitable[Response]],
) -> None:
    """Process a single HTTP request through *dispatch*."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    try:
        response = await dispatch(request)
    except HTTPError as exc:
        logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
        response = problem.from_http_error(exc, instance=request.path)
    except Exception:
        logger.exception("500 %s %s", request.method, request.path)
        response = problem.internal_server_error(
            "An unexpected error occurred", instance=request.path
        )

    if request.method == "HEAD":
        response = response.without_body()
    await send_response(response, send)
