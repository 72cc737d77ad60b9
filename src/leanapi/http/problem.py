"""RFC 7807 problem details.

Every error the framework produces (404, 405, 401, 429, 500, ...) is an
``application/problem+json`` response built here.
"""

from collections.abc import Iterable
from http import HTTPStatus
from typing import Any

from leanapi.errors import HTTPError
from leanapi.http.response import PROBLEM_CONTENT_TYPE, Response, dump_json

# Problem ``type`` per status code; anything else is "/problems/generic".
PROBLEM_TYPES: dict[int, str] = {
    400: "/problems/bad-request",
    401: "/problems/unauthorized",
    403: "/problems/forbidden",
    404: "/problems/not-found",
    405: "/problems/method-not-allowed",
    415: "/problems/unsupported-media-type",
    422: "/problems/validation",
    429: "/problems/too-many-requests",
    500: "/problems/internal-server-error",
}


def status_title(status: int) -> str:
    """Reason phrase for *status*, e.g. ``"Not Found"``."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def problem(
    status: int,
    title: str | None = None,
    detail: str | None = None,
    *,
    type: str | None = None,  # noqa: A002
    instance: str | None = None,
    errors: Any = None,
    extra: dict[str, Any] | None = None,
) -> Response:
    """Build a problem+json response.

    Optional members (``detail``, ``instance``, ``errors``) are omitted
    when ``None``. *extra* members are merged last.
    """
    body: dict[str, Any] = {
        "type": type or PROBLEM_TYPES.get(status, "/problems/generic"),
        "title": title or status_title(status),
        "status": status,
    }
    if detail is not None:
        body["detail"] = detail
    if instance is not None:
        body["instance"] = instance
    if errors is not None:
        body["errors"] = errors
    if extra:
        body.update(extra)
    return Response(body=dump_json(body), status=status, content_type=PROBLEM_CONTENT_TYPE)


def from_http_error(exc: HTTPError, *, instance: str | None = None) -> Response:
    """Render an ``HTTPError`` (status, detail, headers, errors) as a problem."""
    response = problem(
        exc.status,
        detail=exc.detail or None,
        instance=instance,
        errors=exc.errors,
    )
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def bad_request(detail: str = "The request is invalid", **kwargs: Any) -> Response:
    return problem(400, detail=detail, **kwargs)


def unauthorized(detail: str = "Authentication is required", **kwargs: Any) -> Response:
    return problem(401, detail=detail, **kwargs).with_header(
        "WWW-Authenticate", 'Bearer realm="API"'
    )


def forbidden(detail: str = "Access is forbidden", **kwargs: Any) -> Response:
    return problem(403, detail=detail, **kwargs)


def not_found(detail: str = "The requested resource was not found", **kwargs: Any) -> Response:
    return problem(404, detail=detail, **kwargs)


def method_not_allowed(allowed: Iterable[str], **kwargs: Any) -> Response:
    """405 with an ``Allow`` header listing *allowed* (sorted, deduplicated)."""
    methods = sorted(set(allowed))
    response = problem(
        405,
        detail="The HTTP method is not allowed for this resource",
        extra={"allowed": methods},
        **kwargs,
    )
    if methods:
        response = response.with_header("Allow", ", ".join(methods))
    return response


def unsupported_media_type(
    detail: str = "The media type is not supported", **kwargs: Any
) -> Response:
    return problem(415, detail=detail, **kwargs)


def validation(errors: dict[str, list[str]], **kwargs: Any) -> Response:
    return problem(422, detail="The request contains validation errors", errors=errors, **kwargs)


def too_many_requests(
    detail: str = "Too many requests",
    retry_after: int | None = None,
    **kwargs: Any,
) -> Response:
    response = problem(429, detail=detail, **kwargs)
    if retry_after is not None:
        response = response.with_header("Retry-After", str(retry_after))
    return response


def internal_server_error(
    detail: str = "An internal server error occurred", **kwargs: Any
) -> Response:
    return problem(500, detail=detail, **kwargs)
