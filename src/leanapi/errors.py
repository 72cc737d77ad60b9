"""leanapi exception hierarchy.

Shared across the route builder, router, app, and middleware so every
module raises and catches the same types.

Unmatched paths and methods are *not* exceptions: the router reports them
as ``NoPathMatch`` / ``MethodMismatch`` values. The ``HTTPError`` family
exists for handlers and middleware that want to abort a request with a
status code.
"""

from dataclasses import dataclass
from typing import Any


class LeanError(Exception):
    """Base for all leanapi-specific errors."""


class ConfigurationError(LeanError):
    """Raised when routes, middleware, or app configuration are invalid.

    Pattern compilation errors surface here at registration time.
    """


class RouteCacheError(ConfigurationError):
    """The route table cannot be written to, or read from, a cache artifact."""


class HandlerResolutionError(LeanError):
    """A matched route's handler reference could not be turned into a callable."""


class MiddlewareResolutionError(LeanError):
    """A deferred middleware reference could not be resolved or instantiated."""


@dataclass(frozen=True, slots=True)
class HTTPError(LeanError):
    """An error that maps directly to an HTTP status code.

    Raised by handlers or middleware. ``ErrorHandlerMiddleware`` and the
    ASGI boundary render it as an ``application/problem+json`` response.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()
    errors: Any = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: the requested resource does not exist."""

    def __init__(self, detail: str = "The requested resource was not found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: the resource exists but not for this HTTP method.

    Carries an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str] | tuple[str, ...], detail: str = "") -> None:
        allow_value = ", ".join(sorted(set(allowed)))
        super().__init__(
            status=405,
            detail=detail or "The HTTP method is not allowed for this resource",
            headers=(("Allow", allow_value),),
        )


class Unauthorized(HTTPError):  # noqa: N818
    """401: authentication is required or failed."""

    def __init__(self, detail: str = "Authentication is required") -> None:
        super().__init__(
            status=401,
            detail=detail,
            headers=(("WWW-Authenticate", 'Bearer realm="API"'),),
        )


class Forbidden(HTTPError):  # noqa: N818
    """403: authenticated but not permitted."""

    def __init__(self, detail: str = "Access is forbidden") -> None:
        super().__init__(status=403, detail=detail)


class UnprocessableContent(HTTPError):  # noqa: N818
    """422: the request is well-formed but fails validation.

    ``errors`` maps field names to lists of messages.
    """

    def __init__(
        self,
        errors: dict[str, list[str]],
        detail: str = "The request contains validation errors",
    ) -> None:
        super().__init__(status=422, detail=detail, errors=errors)
