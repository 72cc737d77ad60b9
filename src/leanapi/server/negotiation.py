"""Content negotiation: maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

from typing import Any

from leanapi.http.response import Response


def negotiate(value: Any) -> Response:
    """Convert a handler's return value to a Response.

    Dispatch order:

    1. ``Response``             -> pass through
    2. ``None``                 -> 204, empty body
    3. ``dict`` / ``list``      -> 200, application/json
    4. ``str``                  -> 200, text/plain
    5. ``bytes``                -> 200, application/octet-stream
    6. ``(value, int)``         -> negotiate value, override status
    7. ``(value, int, dict)``   -> negotiate value, override status + add headers
    """
    match value:
        case Response():
            return value
        case None:
            return Response.no_content()
        case dict() | list():
            return Response.from_json(value)
        case str():
            return Response.from_text(value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case (inner, int() as status):
            return negotiate(inner).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                f"Return Response, dict, list, str, bytes, None, or a "
                f"(value, status[, headers]) tuple."
            )
            raise TypeError(msg)
