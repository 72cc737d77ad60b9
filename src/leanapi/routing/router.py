"""Ordered route table and dispatcher.

Routes are kept per method in registration order; the first route whose
pattern matches wins. The table is read-only once built, so one router
is shared by every concurrent request without locks.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from leanapi.routing.route import (
    DispatchOutcome,
    MethodMismatch,
    NoPathMatch,
    Route,
    RouteMatch,
)


class Router:
    """Immutable route table.

    Usage::

        router = RouteBuilder().get("/users/{id:\\d+}", show_user).build()
        outcome = router.match("GET", "/users/42")
    """

    __slots__ = ("_routes", "_table")

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        ordered = tuple(routes)
        table: dict[str, list[Route]] = {}
        for route in ordered:
            table.setdefault(route.method, []).append(route)
        self._routes: tuple[Route, ...] = ordered
        self._table: Mapping[str, tuple[Route, ...]] = MappingProxyType(
            {method: tuple(entries) for method, entries in table.items()}
        )

    @property
    def routes(self) -> tuple[Route, ...]:
        """Every route in registration order."""
        return self._routes

    @property
    def table(self) -> Mapping[str, tuple[Route, ...]]:
        """Read-only ``method -> routes`` view."""
        return self._table

    def __len__(self) -> int:
        return len(self._routes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Router):
            return NotImplemented
        return self._routes == other._routes

    __hash__ = None  # type: ignore[assignment]

    def _first_match(self, method: str, path: str) -> RouteMatch | None:
        for route in self._table.get(method, ()):
            params = route.match(path)
            if params is not None:
                return RouteMatch(route=route, path_params=params)
        return None

    def match(self, method: str, path: str, *, preflight: bool = False) -> DispatchOutcome:
        """Resolve *method* and *path* to a dispatch outcome.

        1. First matching route for the method (GET routes also serve HEAD).
        2. OPTIONS preflight with no explicit OPTIONS route: synthetic match.
        3. Otherwise ``MethodMismatch`` if any method matches the path,
           else ``NoPathMatch``.
        """
        method = method.upper()
        found = self._first_match(method, path)
        if found is None and method == "HEAD":
            found = self._first_match("GET", path)
        if found is not None:
            return found

        if method == "OPTIONS" and preflight:
            return RouteMatch(route=None)

        allowed = self.allowed_methods(path)
        if allowed:
            return MethodMismatch(path=path, allowed=allowed)
        return NoPathMatch(path=path)

    def allowed_methods(self, path: str) -> tuple[str, ...]:
        """Every method with a route matching *path*, sorted; HEAD rides along with GET."""
        allowed: set[str] = set()
        for method, routes in self._table.items():
            if any(route.match(path) is not None for route in routes):
                allowed.add(method)
        if "GET" in allowed:
            allowed.add("HEAD")
        return tuple(sorted(allowed))

    def find(self, name: str) -> Route | None:
        """Return the first route registered under *name*."""
        for route in self._routes:
            if route.name == name:
                return route
        return None
