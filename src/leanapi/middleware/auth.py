"""Bearer-token authentication and scope checks.

``BearerAuthMiddleware`` verifies ``Authorization: Bearer <token>`` and
hands the downstream chain a request carrying the token's claims.
``RequireScopes`` then gates routes on the ``scopes`` claim.

Usage::

    signer = TokenSigner.from_env()
    app.alias_middleware("auth", BearerAuthMiddleware(signer))

    app.get("/users", list_users, middleware=["auth", RequireScopes("users.read")])

Registered by class (``middleware=[BearerAuthMiddleware]``), the
middleware is built per request with a ``TokenSigner.from_env()``.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, TypeAlias, runtime_checkable

from leanapi._internal.invoke import invoke
from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next
from leanapi.security.tokens import InvalidToken, TokenSigner

logger = logging.getLogger("leanapi.auth")


@runtime_checkable
class TokenVerifier(Protocol):
    """Anything with ``verify(token) -> claims`` raising ``InvalidToken``."""

    def verify(self, token: str) -> dict[str, Any]: ...


VerifyFunc: TypeAlias = Callable[[str], dict[str, Any] | Awaitable[dict[str, Any]]]


class BearerAuthMiddleware:
    """Require a valid bearer token.

    - missing token: 401 ``Missing or invalid Authorization header``
    - verification failure: 401 ``Invalid token: <reason>``
    - success: ``request.with_claims(claims)`` continues the chain

    Every 401 carries ``WWW-Authenticate: Bearer realm="API"``.
    """

    __slots__ = ("_verify",)

    def __init__(self, verifier: TokenVerifier | VerifyFunc | None = None) -> None:
        if verifier is None:
            verifier = TokenSigner.from_env()
        if isinstance(verifier, TokenVerifier):
            self._verify: VerifyFunc = verifier.verify
        else:
            self._verify = verifier

    async def __call__(self, request: Request, next: Next) -> Response:
        token = request.bearer_token
        if token is None:
            return problem.unauthorized(
                "Missing or invalid Authorization header", instance=request.path
            )

        try:
            claims = await invoke(self._verify, token)
        except InvalidToken as exc:
            logger.info(
                "Token rejected",
                extra={"context": {"path": request.path, "reason": str(exc)}},
            )
            return problem.unauthorized(f"Invalid token: {exc}", instance=request.path)

        return await next(request.with_claims(claims))


class RequireScopes:
    """Require every listed scope in the token's ``scopes`` claim.

    Accepts scopes as separate arguments or one comma-separated string::

        RequireScopes("users.read", "users.write")
        RequireScopes("users.read,users.write")
    """

    __slots__ = ("scopes",)

    def __init__(self, *scopes: str | Iterable[str]) -> None:
        required: list[str] = []
        for item in scopes:
            parts = item.split(",") if isinstance(item, str) else list(item)
            required.extend(part.strip() for part in parts if part.strip())
        self.scopes: tuple[str, ...] = tuple(required)

    async def __call__(self, request: Request, next: Next) -> Response:
        if not request.is_authenticated:
            return problem.unauthorized(
                "This endpoint requires authentication", instance=request.path
            )

        granted = request.claim("scopes", [])
        if not isinstance(granted, list):
            return problem.forbidden(
                "Token does not contain valid scopes", instance=request.path
            )

        for scope in self.scopes:
            if scope not in granted:
                return problem.forbidden(
                    f"Required scope '{scope}' is missing", instance=request.path
                )
        return await next(request)
