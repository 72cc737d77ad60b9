"""Sliding-window rate limiting.

Clients are keyed by the token's ``sub`` claim when the request is
authenticated (``user:<sub>``), otherwise by client IP (``ip:<addr>``).
Place the middleware after ``BearerAuthMiddleware`` to get per-user
limits.

Every response carries ``X-RateLimit-Limit``, ``X-RateLimit-Remaining``
and ``X-RateLimit-Reset``. Rejections are 429 problems with a
``Retry-After`` that includes 1-5 seconds of jitter, so clients blocked
together don't all retry together.
"""

import logging
import random
import time
from collections.abc import Callable

import anyio

from leanapi.config import AppConfig
from leanapi.errors import ConfigurationError
from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next
from leanapi.ratelimit import create_store
from leanapi.ratelimit.store import Clock, HitResult, RateLimitStore

logger = logging.getLogger("leanapi.ratelimit")


def default_jitter() -> int:
    return random.randint(1, 5)


def rate_limit_key(request: Request) -> str:
    """``user:<sub>`` for authenticated requests, else ``ip:<client ip>``."""
    if request.is_authenticated:
        subject = request.claim("sub")
        if subject:
            return f"user:{subject}"
    return f"ip:{request.client_ip}"


class RateLimitMiddleware:
    """Allow *limit* requests per *window* seconds per client.

    Usage::

        app.add_middleware(RateLimitMiddleware.from_config(config))
        app.alias_middleware("throttle", RateLimitMiddleware(limit=10, window=60))

    With no arguments the store and limits come from ``AppConfig.from_env()``.
    """

    __slots__ = ("_clock", "_jitter", "limit", "store", "window")

    def __init__(
        self,
        store: RateLimitStore | None = None,
        limit: int | None = None,
        window: int | None = None,
        *,
        jitter: Callable[[], int] = default_jitter,
        clock: Clock = time.time,
    ) -> None:
        if store is None or limit is None or window is None:
            config = AppConfig.from_env()
            store = store if store is not None else create_store(config)
            limit = limit if limit is not None else config.rate_limit_requests
            window = window if window is not None else config.rate_limit_window
        if limit < 1 or window < 1:
            msg = f"Rate limit needs limit >= 1 and window >= 1, got limit={limit} window={window}"
            raise ConfigurationError(msg)
        self.store = store
        self.limit = limit
        self.window = window
        self._jitter = jitter
        self._clock = clock

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: object) -> "RateLimitMiddleware":
        return cls(
            create_store(config),
            config.rate_limit_requests,
            config.rate_limit_window,
            **kwargs,  # type: ignore[arg-type]
        )

    def _consume(self, key: str) -> HitResult | None:
        """Record a hit for *key*, or return None when the window is full."""
        if not self.store.allow(key, self.limit, self.window):
            return None
        return self.store.hit(key, self.limit, self.window)

    def _with_headers(self, response: Response, remaining: int, reset_at: int) -> Response:
        return response.with_headers(
            {
                "X-RateLimit-Limit": str(self.limit),
                "X-RateLimit-Remaining": str(remaining),
                "X-RateLimit-Reset": str(reset_at),
            }
        )

    async def _exceeded(self, request: Request, key: str) -> Response:
        retry_after = await anyio.to_thread.run_sync(
            self.store.retry_after, key, self.limit, self.window
        )
        if retry_after > 0:
            retry_after += self._jitter()
        logger.warning(
            "Rate limit exceeded",
            extra={"context": {"key": key, "path": request.path, "retry_after": retry_after}},
        )
        response = problem.too_many_requests(
            "Rate limit exceeded", retry_after, instance=request.path
        )
        return self._with_headers(response, 0, int(self._clock()) + retry_after)

    async def __call__(self, request: Request, next: Next) -> Response:
        key = rate_limit_key(request)
        result = await anyio.to_thread.run_sync(self._consume, key)
        if result is None:
            return await self._exceeded(request, key)

        response = await next(request)
        return self._with_headers(response, result.remaining, result.reset_at)
