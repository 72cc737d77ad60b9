"""Route, handler references, and dispatch outcomes."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from leanapi.routing.pattern import CompiledPattern

HTTP_METHODS: tuple[str, ...] = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

# A middleware reference as registered: an instance or async callable,
# a class instantiated lazily, or a string alias from the app registry.
MiddlewareSpec: TypeAlias = Any


@dataclass(frozen=True, slots=True)
class FunctionHandler:
    """A plain function (sync or async) called with the request."""

    func: Callable[..., Any]

    @property
    def label(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))


@dataclass(frozen=True, slots=True)
class ControllerHandler:
    """A controller class plus method name.

    The class is instantiated with no arguments on every dispatch, then
    the named method is called with the request.
    """

    controller: type
    method: str

    @property
    def label(self) -> str:
        return f"{self.controller.__qualname__}.{self.method}"


HandlerRef: TypeAlias = FunctionHandler | ControllerHandler


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route. Never mutated after registration.

    ``template`` is the path as written at the call site; ``path`` is the
    full path after group prefixes were applied, and the one ``pattern``
    was compiled from. ``middleware`` already includes every enclosing
    group's middleware, outer to inner, before the route's own.
    """

    method: str
    template: str
    path: str
    pattern: CompiledPattern
    handler: HandlerRef
    middleware: tuple[MiddlewareSpec, ...] = ()
    name: str | None = None

    def match(self, path: str) -> dict[str, str] | None:
        return self.pattern.match(path)


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """A route was found.

    ``route`` is None for a synthesized CORS preflight: an OPTIONS request
    carrying ``Access-Control-Request-Method`` with no explicit OPTIONS route.
    """

    route: Route | None
    path_params: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_preflight(self) -> bool:
        return self.route is None


@dataclass(frozen=True, slots=True)
class NoPathMatch:
    """No route matches the path under any method (404)."""

    path: str


@dataclass(frozen=True, slots=True)
class MethodMismatch:
    """Routes match the path, but not for the requested method (405).

    ``allowed`` is sorted and deduplicated; HEAD is present whenever GET is.
    """

    path: str
    allowed: tuple[str, ...]


DispatchOutcome: TypeAlias = RouteMatch | NoPathMatch | MethodMismatch
