"""leanapi application class.

Mutable during setup (routes, groups, middleware, aliases, hooks).
Frozen on first dispatch: the route table is built from registration, or
loaded from the route cache, and never changes afterwards.
"""

import logging
import os
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from leanapi._internal.asgi import Receive, Scope, Send
from leanapi._internal.invoke import invoke
from leanapi._internal.types import Hook, RouteDefiner
from leanapi.config import AppConfig
from leanapi.context import request_var
from leanapi.errors import ConfigurationError, RouteCacheError
from leanapi.http import problem
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.chain import compose
from leanapi.middleware.protocol import Next
from leanapi.routing.builder import RouteBuilder
from leanapi.routing.cache import dump_route_cache, load_route_cache
from leanapi.routing.route import (
    MethodMismatch,
    MiddlewareSpec,
    NoPathMatch,
    Route,
    RouteMatch,
)
from leanapi.routing.router import Router
from leanapi.server.handler import handle_request
from leanapi.server.invoker import invoke_handler

logger = logging.getLogger("leanapi.app")

ROUTE_SOURCE_REGISTERED = "registered"
ROUTE_SOURCE_CACHE = "cache"


async def _preflight_endpoint(request: Request) -> Response:
    """Answer a CORS preflight that no OPTIONS route claimed."""
    return Response.no_content()


class App:
    """The leanapi application.

    Mutable during setup, frozen on first dispatch (or lifespan startup).

    Usage::

        app = App()
        app.set_global_middleware([ErrorHandlerMiddleware(), RequestIdMiddleware()])

        @app.get("/users/{id:\\d+}")
        def show_user(request, id: int):
            return {"id": id}

        def v1(app: App) -> None:
            app.post("/users", (UserController, "create"))

        app.group("/v1", v1, middleware=["auth"])

    Thread safety:
        Registration is single-threaded (module import time). The freeze
        transition uses a Lock + double-check so exactly one thread builds
        the route table even if several requests arrive at once.
    """

    __slots__ = (
        "_aliases",
        "_builder",
        "_definers",
        "_freeze_lock",
        "_frozen",
        "_global_middleware",
        "_middleware",
        "_route_source",
        # Compiled state (populated by _freeze)
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._builder: RouteBuilder | None = RouteBuilder()
        self._definers: list[RouteDefiner] = []
        self._global_middleware: list[MiddlewareSpec] = []
        self._aliases: dict[str, MiddlewareSpec] = {}
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._router: Router | None = None
        self._middleware: tuple[MiddlewareSpec, ...] = ()
        self._route_source: str | None = None

    # -- Route registration --

    def _routes(self) -> RouteBuilder:
        self._check_not_frozen()
        assert self._builder is not None
        return self._builder

    def route(
        self,
        path: str,
        handler: Any = None,
        *,
        methods: Iterable[str] | None = None,
        middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None = (),
        name: str | None = None,
    ) -> Any:
        """Register *handler* for *methods* (default ``["GET"]``).

        Without a handler, returns a decorator.
        """
        return self._routes().route(
            path,
            handler,
            methods=tuple(methods or ("GET",)),
            middleware=middleware,
            name=name,
        )

    def get(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().get(path, handler, middleware=middleware, name=name)

    def post(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().post(path, handler, middleware=middleware, name=name)

    def put(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().put(path, handler, middleware=middleware, name=name)

    def patch(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().patch(path, handler, middleware=middleware, name=name)

    def delete(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().delete(path, handler, middleware=middleware, name=name)

    def head(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().head(path, handler, middleware=middleware, name=name)

    def options(self, path: str, handler: Any = None, *, middleware: Any = (), name: str | None = None) -> Any:
        return self._routes().options(path, handler, middleware=middleware, name=name)

    def group(
        self,
        prefix: str,
        callback: Callable[["App"], Any] | None = None,
        *,
        middleware: MiddlewareSpec | Iterable[MiddlewareSpec] | None = (),
    ) -> Any:
        """Register the routes defined by *callback* under *prefix*.

        *callback* receives the app. Groups nest: prefixes concatenate and
        middleware accumulates outer to inner. Without a callback, returns
        a decorator.
        """
        if callback is None:

            def decorator(func: Callable[["App"], Any]) -> Callable[["App"], Any]:
                self.group(prefix, func, middleware=middleware)
                return func

            return decorator

        self._routes().group(prefix, lambda _builder: callback(self), middleware=middleware)
        return callback

    def register_routes(self, definer: RouteDefiner) -> RouteDefiner:
        """Defer route definitions until the app freezes.

        Deferred definers are skipped entirely when the route table is
        loaded from the route cache. Usable as a decorator.
        """
        self._check_not_frozen()
        self._definers.append(definer)
        return definer

    # -- Middleware --

    def add_middleware(self, middleware: MiddlewareSpec) -> None:
        """Append a global middleware (runs for every request, outermost first)."""
        self._check_not_frozen()
        self._global_middleware.append(middleware)

    def set_global_middleware(self, middleware: Iterable[MiddlewareSpec]) -> None:
        """Replace the global middleware list."""
        self._check_not_frozen()
        self._global_middleware = list(middleware)

    def alias_middleware(self, name: str, middleware: MiddlewareSpec) -> None:
        """Register *middleware* under a string alias usable in any middleware list."""
        self._check_not_frozen()
        if not name:
            msg = "Middleware alias must be a non-empty string"
            raise ConfigurationError(msg)
        self._aliases[name] = middleware

    @property
    def aliases(self) -> Mapping[str, MiddlewareSpec]:
        return MappingProxyType(self._aliases)

    # -- Lifecycle hooks --

    def on_startup(self, func: Hook) -> Hook:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Introspection --

    @property
    def router(self) -> Router:
        """The frozen route table (freezes the app if needed)."""
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    @property
    def route_source(self) -> str | None:
        """``"registered"`` or ``"cache"`` once frozen, else None."""
        return self._route_source

    @property
    def middleware(self) -> tuple[MiddlewareSpec, ...]:
        """Global middleware, outermost first."""
        if self._frozen:
            return self._middleware
        return tuple(self._global_middleware)

    # -- Route cache --

    def build_route_cache(self, path: str | os.PathLike[str] | None = None) -> Path:
        """Build the route table from registration and write it to the cache.

        Raises ``RouteCacheError`` if the app was already loaded from a
        cache, or if a handler or middleware can't be stored by name.
        """
        self._ensure_frozen(use_cache=False)
        if self._route_source == ROUTE_SOURCE_CACHE:
            msg = "Routes were loaded from the route cache; rebuild from a fresh app"
            raise RouteCacheError(msg)
        assert self._router is not None
        return dump_route_cache(self._router, path or self.config.route_cache_path, self._aliases)

    # -- Dispatch --

    async def dispatch(self, request: Request) -> Response:
        """Route *request* through middleware to its handler.

        404 and 405 outcomes become problem responses wrapped only by the
        global middleware. Exceptions raised by middleware or handlers
        propagate to the caller unchanged.
        """
        self._ensure_frozen()
        assert self._router is not None

        preflight = (
            request.method == "OPTIONS" and "access-control-request-method" in request.headers
        )
        outcome = self._router.match(request.method, request.path, preflight=preflight)

        endpoint: Next
        specs: tuple[MiddlewareSpec, ...] = self._middleware
        match outcome:
            case RouteMatch(route=None):
                endpoint = _preflight_endpoint
            case RouteMatch(route=Route() as route, path_params=params):
                request = request.with_path_params(params)
                endpoint = self._route_endpoint(route)
                specs = (*self._middleware, *route.middleware)
            case MethodMismatch(path=path, allowed=allowed):
                logger.debug("405 %s %s (allowed: %s)", request.method, path, ", ".join(allowed))
                endpoint = self._static_endpoint(problem.method_not_allowed(allowed, instance=path))
            case NoPathMatch(path=path):
                logger.debug("404 %s %s", request.method, path)
                endpoint = self._static_endpoint(
                    problem.not_found(f"Route {path} not found", instance=path)
                )

        token = request_var.set(request)
        try:
            response = await compose(specs, endpoint, self._aliases)(request)
        finally:
            request_var.reset(token)

        if request.method == "HEAD":
            response = response.without_body()
        return response

    @staticmethod
    def _route_endpoint(route: Route) -> Next:
        handler = route.handler

        async def endpoint(req: Request) -> Response:
            return await invoke_handler(handler, req)

        return endpoint

    @staticmethod
    def _static_endpoint(response: Response) -> Next:
        async def endpoint(req: Request) -> Response:
            return response

        return endpoint

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        await handle_request(scope, receive, send, dispatch=self.dispatch)

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), then
        runs registered startup/shutdown hooks.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run startup hooks in registration order."""
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Internal --

    def _ensure_frozen(self, *, use_cache: bool | None = None) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze(self.config.use_route_cache if use_cache is None else use_cache)

    def _freeze(self, use_cache: bool) -> None:
        """Build or load the route table. MUST be called holding _freeze_lock."""
        cache_path = self.config.route_cache_path
        if use_cache and os.path.exists(cache_path):
            router = load_route_cache(cache_path)
            source = ROUTE_SOURCE_CACHE
        else:
            assert self._builder is not None
            for definer in self._definers:
                definer(self)
            router = self._builder.build()
            source = ROUTE_SOURCE_REGISTERED

        self._validate_aliases(router)

        self._router = router
        self._middleware = tuple(self._global_middleware)
        self._route_source = source
        self._builder = None
        self._frozen = True
        logger.info(
            "Routes ready",
            extra={"context": {"source": source, "routes": len(router)}},
        )

    def _validate_aliases(self, router: Router) -> None:
        specs = [*self._global_middleware]
        for route in router.routes:
            specs.extend(route.middleware)
        unknown = sorted({s for s in specs if isinstance(s, str) and s not in self._aliases})
        if unknown:
            msg = f"Unknown middleware alias(es): {', '.join(unknown)}"
            raise ConfigurationError(msg)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and aliases before the first request."
            )
            raise RuntimeError(msg)
