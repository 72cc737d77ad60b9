"""Route registration with nested groups.

``RouteBuilder`` is the mutable, registration-time side of routing. It keeps
a stack of group frames; every route added while frames are active gets
their prefixes prepended and their middleware wrapped around its own.
``build()`` hands back an immutable ``Router`` and the builder can be
discarded.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from leanapi.errors import ConfigurationError
from leanapi.routing.pattern import compile_pattern
from leanapi.routing.route import (
    HTTP_METHODS,
    ControllerHandler,
    FunctionHandler,
    HandlerRef,
    MiddlewareSpec,
    Route,
)
from leanapi.routing.router import Router


@dataclass(frozen=True, slots=True)
class GroupFrame:
    """One active ``group()`` call."""

    prefix: str
    middleware: tuple[MiddlewareSpec, ...]


def coerce_handler(handler: Any) -> HandlerRef:
    """Turn a registered handler into a ``HandlerRef``.

    Accepts a callable, a ``(ControllerClass, "method")`` pair, or an
    existing ``HandlerRef``.
    """
    if isinstance(handler, FunctionHandler | ControllerHandler):
        return handler
    if isinstance(handler, tuple | list):
        if len(handler) != 2 or not isinstance(handler[0], type) or not isinstance(handler[1], str):
            msg = f"Controller handler must be (ControllerClass, 'method'), got {handler!r}"
            raise ConfigurationError(msg)
        controller, method = handler
        if not callable(getattr(controller, method, None)):
            msg = f"Controller {controller.__qualname__} has no method {method!r}"
            raise ConfigurationError(msg)
        return ControllerHandler(controller, method)
    if callable(handler):
        return FunctionHandler(handler)
    msg = f"Route handler must be callable or (ControllerClass, 'method'), got {handler!r}"
    raise ConfigurationError(msg)


def _normalize_middleware(middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None) -> tuple[MiddlewareSpec, ...]:
    if middleware is None:
        return ()
    if isinstance(middleware, str | type) or callable(middleware):
        return (middleware,)
    return tuple(middleware)


def join_paths(prefix: str, path: str) -> str:
    """Concatenate a group prefix and a path with exactly one ``/`` between them."""
    if not prefix:
        return path
    if not path or path == "/":
        return prefix.rstrip("/") or "/"
    return f"{prefix.rstrip('/')}/{path.lstrip('/')}"


class RouteBuilder:
    """Collects routes in registration order.

    Usage::

        builder = RouteBuilder()
        builder.get("/health", health)

        def api(r: RouteBuilder) -> None:
            r.get("/users/{id:\\d+}", show_user)
            r.post("/users", (UserController, "create"), middleware=[require_admin])

        builder.group("/v1", api, middleware=[AuthMiddleware])
        router = builder.build()
    """

    __slots__ = ("_frames", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._frames: list[GroupFrame] = []

    # -- Registration --

    def add(
        self,
        method: str,
        path: str,
        handler: Any,
        middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None = (),
        *,
        name: str | None = None,
    ) -> Route:
        """Register one route and return it."""
        method = method.upper()
        if method not in HTTP_METHODS:
            msg = f"Unsupported HTTP method {method!r}; expected one of {', '.join(HTTP_METHODS)}"
            raise ConfigurationError(msg)

        full_path = path
        for frame in reversed(self._frames):
            full_path = join_paths(frame.prefix, full_path)

        group_middleware = tuple(mw for frame in self._frames for mw in frame.middleware)
        route = Route(
            method=method,
            template=path,
            path=full_path,
            pattern=compile_pattern(full_path),
            handler=coerce_handler(handler),
            middleware=(*group_middleware, *_normalize_middleware(middleware)),
            name=name,
        )
        self._routes.append(route)
        return route

    def route(
        self,
        path: str,
        handler: Any = None,
        *,
        methods: Sequence[str] = ("GET",),
        middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None = (),
        name: str | None = None,
    ) -> Any:
        """Register *handler* for several methods; without a handler, act as a decorator."""
        if handler is None:

            def decorator(func: Any) -> Any:
                self.route(path, func, methods=methods, middleware=middleware, name=name)
                return func

            return decorator

        for method in methods:
            self.add(method, path, handler, middleware, name=name)
        return handler

    def _verb(self, method: str, path: str, handler: Any, middleware: Any, name: str | None) -> Any:
        if handler is None:

            def decorator(func: Any) -> Any:
                self.add(method, path, func, middleware, name=name)
                return func

            return decorator
        self.add(method, path, handler, middleware, name=name)
        return handler

    def get(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("GET", path, handler, middleware, name)

    def post(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("POST", path, handler, middleware, name)

    def put(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("PUT", path, handler, middleware, name)

    def patch(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("PATCH", path, handler, middleware, name)

    def delete(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("DELETE", path, handler, middleware, name)

    def head(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("HEAD", path, handler, middleware, name)

    def options(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._verb("OPTIONS", path, handler, middleware, name)

    # -- Groups --

    def group(
        self,
        prefix: str,
        callback: Callable[..., Any] | None = None,
        *,
        middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None = (),
    ) -> Any:
        """Register routes under *prefix* with shared *middleware*.

        *callback* receives this builder. Without a callback, returns a
        decorator that runs the decorated function as the callback.
        The frame is popped even if the callback raises.
        """
        if callback is None:

            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self.group(prefix, func, middleware=middleware)
                return func

            return decorator

        self._frames.append(GroupFrame(prefix, _normalize_middleware(middleware)))
        try:
            callback(self)
        finally:
            self._frames.pop()
        return callback

    @property
    def depth(self) -> int:
        """Number of currently open groups."""
        return len(self._frames)

    # -- Output --

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def build(self) -> Router:
        """Freeze the collected routes into a ``Router``."""
        if self._frames:
            msg = "Cannot build routes while a group is still open"
            raise ConfigurationError(msg)
        return Router(self._routes)
