"""Strong ETags for JSON GET responses.

A successful, non-empty JSON response to a GET, or to a HEAD served by the
GET route, gets an ``ETag`` (quoted base64url SHA-256 of the body). When
the request's ``If-None-Match`` lists that tag, or is ``*``, the body is
dropped and a 304 is returned.
"""

import base64
import hashlib

from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next

CACHE_CONTROL = "private, max-age=0, must-revalidate"


def compute_etag(body: bytes) -> str:
    digest = hashlib.sha256(body).digest()
    return '"' + base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii") + '"'


def etag_matches(if_none_match: list[str], etag: str) -> bool:
    """Whether a parsed ``If-None-Match`` header covers *etag*.

    Weak validators (``W/"..."``) compare by their opaque tag.
    """
    for candidate in if_none_match:
        if candidate == "*":
            return True
        if candidate.removeprefix("W/") == etag:
            return True
    return False


class ETagMiddleware:
    __slots__ = ()

    @staticmethod
    def _applies(request: Request, response: Response) -> bool:
        return (
            request.method in ("GET", "HEAD")
            and response.status == 200
            and response.media_type == "application/json"
            and bool(response.body_bytes)
        )

    async def __call__(self, request: Request, next: Next) -> Response:
        response = await next(request)
        if not self._applies(request, response):
            return response

        etag = compute_etag(response.body_bytes)
        if etag_matches(request.headers.get_tokens("if-none-match"), etag):
            return (
                Response(body=b"", status=304)
                .with_header("ETag", etag)
                .with_header("Cache-Control", CACHE_CONTROL)
            )
        return response.with_header("ETag", etag)
