"""Immutable HTTP request.

Frozen metadata with async body access. Routing and authentication never
mutate a request: they derive a new one through ``with_path_params()`` or
``with_claims()``, sharing the body cache with the original.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from leanapi._internal.asgi import Receive
from leanapi.http.headers import Headers
from leanapi.http.query import QueryParams

_DEFAULT_CLIENT_IP = "127.0.0.1"


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, query) is frozen at creation.
    The body is read asynchronously via ``.body()``, ``.json()``, ``.text()``.

    ``path_params`` holds the values captured by the matched route, and
    ``claims`` the verified token claims once an authentication
    middleware has run (``None`` when unauthenticated).
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: Mapping[str, str]
    http_version: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    claims: Mapping[str, Any] | None

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: cache for the body and parsed JSON, shared by derived requests
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def is_json(self) -> bool:
        """True when the Content-Type is JSON (``application/json`` or ``+json``)."""
        ct = (self.content_type or "").split(";", 1)[0].strip().lower()
        return ct == "application/json" or ct.endswith("+json")

    @property
    def bearer_token(self) -> str | None:
        """The token from an ``Authorization: Bearer <token>`` header."""
        value = self.headers.get("authorization")
        if not value:
            return None
        scheme, _, token = value.strip().partition(" ")
        if scheme.lower() != "bearer":
            return None
        token = token.strip()
        return token or None

    @property
    def client_ip(self) -> str:
        """Best-effort client address.

        First hop of ``X-Forwarded-For``, then ``X-Real-IP``, then the
        ASGI client address.
        """
        forwarded = self.headers.get_tokens("x-forwarded-for")
        if forwarded:
            return forwarded[0]
        real_ip = self.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
        if self.client:
            return self.client[0]
        return _DEFAULT_CLIENT_IP

    @property
    def is_authenticated(self) -> bool:
        return self.claims is not None

    def claim(self, name: str, default: Any = None) -> Any:
        """Return a single token claim, or *default*."""
        if self.claims is None:
            return default
        return self.claims.get(name, default)

    def path_param(self, name: str, default: str | None = None) -> str | None:
        return self.path_params.get(name, default)

    # -- Derivation --

    def with_path_params(self, path_params: Mapping[str, str]) -> Request:
        """Return a copy carrying the captured route parameters."""
        return replace(self, path_params=dict(path_params))

    def with_claims(self, claims: Mapping[str, Any]) -> Request:
        """Return a copy carrying verified token claims."""
        return replace(self, claims=dict(claims))

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        The ASGI receive channel is consumed once; later calls (on this
        request or any request derived from it) return the cached bytes.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON.

        Raises ``ValueError`` on malformed input. The parsed value is cached.
        """
        if "_json" in self._cache:
            return self._cache["_json"]
        raw = await self.body()
        result = json_module.loads(raw) if raw else None
        self._cache["_json"] = result
        return result

    async def text(self) -> str:
        """Read the body as UTF-8 text."""
        raw = await self.body()
        return raw.decode("utf-8")

    # -- Factories --

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            claims=None,
            _receive=receive,
        )

    @classmethod
    def create(
        cls,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
        query_string: bytes = b"",
        client: tuple[str, int] | None = ("127.0.0.1", 0),
    ) -> Request:
        """Build a request without an ASGI server, e.g. for ``App.dispatch``."""
        request = cls(
            method=method.upper(),
            path=path,
            headers=Headers.from_dict(headers),
            query=QueryParams(query_string),
            path_params={},
            http_version="1.1",
            server=None,
            client=client,
            claims=None,
            _receive=_empty_receive,
        )
        request._cache["_body"] = body
        return request
