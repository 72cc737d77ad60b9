"""Middleware composition.

``compose`` wraps an endpoint in a list of middleware specs, building from
the innermost layer outward so the first spec runs first::

    compose([a, b, c], endpoint)(request)
    # a-before, b-before, c-before, endpoint, c-after, b-after, a-after

Specs are resolved right before they are wrapped:

- a ``str`` is looked up in the alias registry
- a class is instantiated with no arguments
- anything else callable is used as-is
"""

from collections.abc import Mapping, Sequence
from typing import Any

from leanapi.errors import MiddlewareResolutionError
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.middleware.protocol import Next
from leanapi.routing.route import MiddlewareSpec

_MAX_ALIAS_DEPTH = 8


def describe(spec: MiddlewareSpec) -> str:
    """Short human-readable name for a middleware spec."""
    if isinstance(spec, str):
        return f"@{spec}"
    if isinstance(spec, type):
        return spec.__qualname__
    return getattr(spec, "__qualname__", None) or type(spec).__qualname__


def resolve_middleware(
    spec: MiddlewareSpec,
    aliases: Mapping[str, MiddlewareSpec] | None = None,
) -> Any:
    """Turn a middleware spec into a ready-to-call middleware.

    Raises ``MiddlewareResolutionError`` for unknown aliases, classes
    that fail to instantiate, and non-callable results.
    """
    aliases = aliases or {}
    seen: list[str] = []
    while isinstance(spec, str):
        if spec in seen or len(seen) >= _MAX_ALIAS_DEPTH:
            msg = f"Middleware alias cycle: {' -> '.join([*seen, spec])}"
            raise MiddlewareResolutionError(msg)
        seen.append(spec)
        try:
            spec = aliases[spec]
        except KeyError:
            msg = f"Unknown middleware alias {spec!r}"
            raise MiddlewareResolutionError(msg) from None

    if isinstance(spec, type):
        try:
            spec = spec()
        except Exception as exc:
            msg = f"Cannot instantiate middleware {spec.__qualname__}: {exc}"
            raise MiddlewareResolutionError(msg) from exc

    if not callable(spec):
        msg = f"Middleware {spec!r} is not callable"
        raise MiddlewareResolutionError(msg)
    return spec


def compose(
    specs: Sequence[MiddlewareSpec],
    endpoint: Next,
    aliases: Mapping[str, MiddlewareSpec] | None = None,
) -> Next:
    """Wrap *endpoint* in *specs*, outermost first."""
    handler = endpoint
    for spec in reversed(specs):
        mw = resolve_middleware(spec, aliases)
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
            return await _mw(req, _next)

        handler = make_next
    return handler
