"""HTTP response with chainable .with_*() transformation API.

Each transformation returns a new Response. Middleware decorates the
response it gets back from ``next`` without mutating it.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

JSON_CONTENT_TYPE = "application/json"
PROBLEM_CONTENT_TYPE = "application/problem+json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def dump_json(data: Any) -> str:
    """Serialize *data* compactly, keeping slashes and non-ASCII unescaped."""
    return json_module.dumps(data, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set status
    and headers::

        Response.from_json({"id": 1}, status=201).with_header("Location", "/users/1")
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str = TEXT_CONTENT_TYPE
    headers: tuple[tuple[str, str], ...] = ()

    # -- Factories --

    @classmethod
    def from_json(cls, data: Any, status: int = 200) -> Response:
        """A JSON response."""
        return cls(body=dump_json(data), status=status, content_type=JSON_CONTENT_TYPE)

    @classmethod
    def from_text(cls, text: str, status: int = 200) -> Response:
        """A plain-text response."""
        return cls(body=text, status=status, content_type=TEXT_CONTENT_TYPE)

    @classmethod
    def no_content(cls) -> Response:
        """An empty 204 response."""
        return cls(body=b"", status=204)

    # -- Chainable transformations --

    def with_status(self, status: int) -> Response:
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str]) -> Response:
        """Return a new Response with additional headers."""
        new = tuple(headers.items())
        return replace(self, headers=(*self.headers, *new))

    def replacing_header(self, name: str, value: str) -> Response:
        """Return a new Response where *name* has exactly one value."""
        lower = name.lower()
        kept = tuple((n, v) for n, v in self.headers if n.lower() != lower)
        return replace(self, headers=(*kept, (name, value)))

    def with_content_type(self, content_type: str) -> Response:
        return replace(self, content_type=content_type)

    def with_body(self, body: str | bytes) -> Response:
        return replace(self, body=body)

    def without_body(self) -> Response:
        """Return a copy with an empty body; status and headers are kept."""
        return replace(self, body=b"")

    # -- Inspection --

    def header(self, name: str) -> str | None:
        """Return the first value of header *name* (case-insensitive)."""
        lower = name.lower()
        if lower == "content-type":
            return self.content_type
        for header_name, value in self.headers:
            if header_name.lower() == lower:
                return value
        return None

    def header_list(self, name: str) -> list[str]:
        lower = name.lower()
        return [value for header_name, value in self.headers if header_name.lower() == lower]

    @property
    def media_type(self) -> str:
        """Content type without parameters, lowercased."""
        return self.content_type.split(";", 1)[0].strip().lower()

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    def json(self) -> Any:
        """Parse the body as JSON."""
        return json_module.loads(self.body_bytes)
