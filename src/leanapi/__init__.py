"""LeanAPI: a small framework for JSON APIs.

Routes with typed path parameters, an onion middleware pipeline,
problem+json errors, and a route cache for fast cold starts. Runs on any
ASGI server.

Basic usage::

    from leanapi import App

    app = App()

    @app.get("/users/{id:\\d+}")
    def show(request, id: int):
        return {"id": id}

Groups share a prefix and middleware::

    with_auth = ["auth", RequireScopes("users.read")]

    @app.group("/v1", middleware=with_auth)
    def v1(app):
        app.get("/users", list_users)
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "BearerAuthMiddleware",
    "CORSConfig",
    "CORSMiddleware",
    "ConfigurationError",
    "ETagMiddleware",
    "ErrorHandlerMiddleware",
    "Forbidden",
    "HTTPError",
    "JsonBodyMiddleware",
    "LeanError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "RateLimitMiddleware",
    "Request",
    "RequestIdMiddleware",
    "RequireScopes",
    "Response",
    "RouteCacheError",
    "TokenSigner",
    "Unauthorized",
    "UnprocessableContent",
    "ValidationResult",
    "configure_logging",
    "get_request",
    "get_request_id",
    "validate",
]

# name -> module that defines it
_LAZY_IMPORTS: dict[str, str] = {
    "App": "leanapi.app",
    "AppConfig": "leanapi.config",
    "BearerAuthMiddleware": "leanapi.middleware.auth",
    "CORSConfig": "leanapi.middleware.cors",
    "CORSMiddleware": "leanapi.middleware.cors",
    "ConfigurationError": "leanapi.errors",
    "ETagMiddleware": "leanapi.middleware.etag",
    "ErrorHandlerMiddleware": "leanapi.middleware.errors",
    "Forbidden": "leanapi.errors",
    "HTTPError": "leanapi.errors",
    "JsonBodyMiddleware": "leanapi.middleware.json_body",
    "LeanError": "leanapi.errors",
    "MethodNotAllowed": "leanapi.errors",
    "Middleware": "leanapi.middleware.protocol",
    "Next": "leanapi.middleware.protocol",
    "NotFound": "leanapi.errors",
    "RateLimitMiddleware": "leanapi.middleware.rate_limit",
    "Request": "leanapi.http.request",
    "RequestIdMiddleware": "leanapi.middleware.request_id",
    "RequireScopes": "leanapi.middleware.auth",
    "Response": "leanapi.http.response",
    "RouteCacheError": "leanapi.errors",
    "TokenSigner": "leanapi.security.tokens",
    "Unauthorized": "leanapi.errors",
    "UnprocessableContent": "leanapi.errors",
    "ValidationResult": "leanapi.validation",
    "configure_logging": "leanapi.log",
    "get_request": "leanapi.context",
    "get_request_id": "leanapi.context",
    "validate": "leanapi.validation",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import leanapi`` fast while providing a clean top-level API.
    """
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    value = getattr(importlib.import_module(module_name), name)
    globals()[name] = value
    return value
