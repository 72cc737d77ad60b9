"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    BearerAuthMiddleware -- Verify bearer tokens, attach claims
    CORSMiddleware -- Cross-Origin Resource Sharing
    ETagMiddleware -- Strong ETags and 304s for JSON GET responses
    ErrorHandlerMiddleware -- Turn exceptions into problem+json
    JsonBodyMiddleware -- Enforce and validate JSON request bodies
    RateLimitMiddleware -- Sliding-window limits per user or IP
    RequestIdMiddleware -- X-Request-Id propagation and request logging
    RequireScopes -- Gate routes on token scopes
"""

from leanapi.middleware.auth import BearerAuthMiddleware, RequireScopes
from leanapi.middleware.chain import compose, resolve_middleware
from leanapi.middleware.cors import CORSConfig, CORSMiddleware
from leanapi.middleware.errors import ErrorHandlerMiddleware
from leanapi.middleware.etag import ETagMiddleware
from leanapi.middleware.json_body import JsonBodyMiddleware
from leanapi.middleware.protocol import Middleware, Next
from leanapi.middleware.rate_limit import RateLimitMiddleware
from leanapi.middleware.request_id import RequestIdMiddleware

__all__ = [
    "BearerAuthMiddleware",
    "CORSConfig",
    "CORSMiddleware",
    "ETagMiddleware",
    "ErrorHandlerMiddleware",
    "JsonBodyMiddleware",
    "Middleware",
    "Next",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "RequireScopes",
    "compose",
    "resolve_middleware",
]
