"""JSON request body enforcement.

POST, PUT, and PATCH requests that carry a body must declare a JSON
content type and contain valid JSON. The parsed value is cached on the
request, so ``await request.json()`` downstream doesn't parse twice.
"""

from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class JsonBodyMiddleware:
    """415 for non-JSON bodies, 400 for malformed JSON."""

    __slots__ = ()

    async def __call__(self, request: Request, next: Next) -> Response:
        if request.method not in BODY_METHODS:
            return await next(request)

        body = await request.body()
        if not body:
            return await next(request)

        if not request.is_json:
            return problem.unsupported_media_type(
                "Content-Type must be application/json", instance=request.path
            )

        try:
            await request.json()
        except ValueError as exc:
            return problem.bad_request(
                f"Invalid JSON format: {exc}",
                type="/problems/invalid-json",
                instance=request.path,
            )
        return await next(request)
