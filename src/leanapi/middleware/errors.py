"""Error boundary middleware.

Turns exceptions raised further down the chain into problem responses so
outer middleware (request ids, CORS, rate-limit headers) still decorate
them. Register it first to cover the whole chain.
"""

import logging
import traceback

from leanapi.errors import HTTPError
from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next

logger = logging.getLogger("leanapi.server")

TRACE_LIMIT = 10


class ErrorHandlerMiddleware:
    """Catch exceptions and render ``application/problem+json``.

    - ``HTTPError`` keeps its status, detail, headers, and ``errors``
    - anything else is logged and becomes a 500; with ``debug=True`` the
      detail is the exception message and a ``debug`` member carries the
      exception class and the innermost frames of the traceback
    """

    __slots__ = ("debug",)

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    async def __call__(self, request: Request, next: Next) -> Response:
        try:
            return await next(request)
        except HTTPError as exc:
            logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
            return problem.from_http_error(exc, instance=request.path)
        except Exception as exc:
            logger.exception(
                "Unhandled exception",
                extra={"context": {"method": request.method, "path": request.path}},
            )
            return self._internal_error(exc, request)

    def _internal_error(self, exc: Exception, request: Request) -> Response:
        if not self.debug:
            return problem.internal_server_error(
                "An unexpected error occurred", instance=request.path
            )
        frames = traceback.extract_tb(exc.__traceback__)[-TRACE_LIMIT:]
        debug_info = {
            "message": str(exc),
            "class": f"{type(exc).__module__}.{type(exc).__qualname__}",
            "trace": [
                {"file": frame.filename, "line": frame.lineno, "function": frame.name}
                for frame in frames
            ],
        }
        return problem.internal_server_error(
            str(exc) or type(exc).__name__,
            instance=request.path,
            extra={"debug": debug_info},
        )
