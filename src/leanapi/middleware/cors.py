"""CORS middleware.

Answers preflight requests and adds CORS headers to actual responses.
Configuration comes from code or from ``CORS_*`` environment variables.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from leanapi.config import env_bool, env_int, env_list
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next

PREFLIGHT_VARY = "Origin, Access-Control-Request-Method, Access-Control-Request-Headers"


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    Defaults allow any origin without credentials::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_credentials=True,
        )
    """

    allow_origins: tuple[str, ...] = ("*",)
    allow_methods: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
    allow_headers: tuple[str, ...] = ("Authorization", "Content-Type")
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CORSConfig":
        """Read ``CORS_ALLOW_ORIGINS``, ``CORS_ALLOW_METHODS``, ``CORS_ALLOW_HEADERS``,
        ``CORS_EXPOSE_HEADERS``, ``CORS_MAX_AGE``, and ``CORS_ALLOW_CREDENTIALS``.
        """
        defaults = cls()
        return cls(
            allow_origins=env_list("CORS_ALLOW_ORIGINS", defaults.allow_origins, environ),
            allow_methods=tuple(
                m.upper() for m in env_list("CORS_ALLOW_METHODS", defaults.allow_methods, environ)
            ),
            allow_headers=env_list("CORS_ALLOW_HEADERS", defaults.allow_headers, environ),
            expose_headers=env_list("CORS_EXPOSE_HEADERS", defaults.expose_headers, environ),
            allow_credentials=bool(
                env_bool("CORS_ALLOW_CREDENTIALS", defaults.allow_credentials, environ)
            ),
            max_age=env_int("CORS_MAX_AGE", defaults.max_age, environ) or 0,
        )


class CORSMiddleware:
    """Cross-Origin Resource Sharing.

    A request with ``Origin`` and ``Access-Control-Request-Method`` on
    ``OPTIONS`` is a preflight and is always answered here with 204. The
    grant headers are added only when both the origin and the requested
    method are allowed.

    Other requests with ``Origin`` pass through. An allowed origin gets
    ``Access-Control-Allow-Origin``, which is ``*`` for a wildcard without
    credentials and otherwise echoes the origin with ``Vary: Origin``. A
    disallowed origin gets only ``Vary: Origin``.

    Usage::

        app.add_middleware(CORSMiddleware(CORSConfig.from_env()))
    """

    __slots__ = ("config", "wildcard")

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()
        self.wildcard = "*" in self.config.allow_origins

    def origin_allowed(self, origin: str) -> bool:
        return self.wildcard or origin in self.config.allow_origins

    def _grant(self, origin: str) -> dict[str, str]:
        """Headers shared by preflight and actual responses for an allowed origin."""
        cfg = self.config
        granted = {"Access-Control-Allow-Origin": origin}
        if self.wildcard and not cfg.allow_credentials:
            granted["Access-Control-Allow-Origin"] = "*"
        if cfg.allow_credentials:
            granted["Access-Control-Allow-Credentials"] = "true"
        return granted

    def preflight(self, origin: str, method: str) -> Response:
        cfg = self.config
        answer = Response.no_content()
        if not self.origin_allowed(origin) or method.upper() not in cfg.allow_methods:
            return answer

        granted = self._grant(origin)
        granted["Access-Control-Allow-Methods"] = ", ".join(cfg.allow_methods)
        if cfg.allow_headers:
            granted["Access-Control-Allow-Headers"] = ", ".join(cfg.allow_headers)
        granted["Access-Control-Max-Age"] = str(cfg.max_age)
        granted["Vary"] = PREFLIGHT_VARY
        return answer.with_headers(granted)

    def decorate(self, response: Response, origin: str) -> Response:
        if not self.origin_allowed(origin):
            return response.with_header("Vary", "Origin")

        granted = self._grant(origin)
        if granted["Access-Control-Allow-Origin"] != "*":
            granted["Vary"] = "Origin"
        if self.config.expose_headers:
            granted["Access-Control-Expose-Headers"] = ", ".join(self.config.expose_headers)
        return response.with_headers(granted)

    async def __call__(self, request: Request, next: Next) -> Response:
        origin = request.headers.get("origin")
        if origin is None:
            return await next(request)

        wanted = request.headers.get("access-control-request-method")
        if wanted and request.method == "OPTIONS":
            return self.preflight(origin, wanted)
        return self.decorate(await next(request), origin)
