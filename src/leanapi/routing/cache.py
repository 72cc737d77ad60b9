"""Route cache: persist a built route table and load it without registration.

The artifact is a JSON document::

    {
      "version": 1,
      "routes": {
        "GET": [
          {"template": "/users/{id:\\d+}", "path": "/v1/users/{id:\\d+}",
           "regex": "^/v1/users/(\\d+)$", "params": ["id"], "groups": [1],
           "handler": {"kind": "function", "target": "app.users:show"},
           "middleware": [{"kind": "alias", "name": "auth"}],
           "name": null}
        ]
      }
    }

Handlers, controllers, and middleware classes are stored by import path.
Middleware instances can only be stored when they are registered under an
alias. Anything else (lambdas, closures, anonymous instances) raises
``RouteCacheError`` when the cache is built, not when it is loaded.

There is no invalidation: a loaded cache is served until it is rebuilt.
"""

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from leanapi._internal.imports import import_string, qualified_name
from leanapi.errors import ConfigurationError, RouteCacheError
from leanapi.routing.pattern import CompiledPattern
from leanapi.routing.route import (
    ControllerHandler,
    FunctionHandler,
    HandlerRef,
    MiddlewareSpec,
    Route,
)
from leanapi.routing.router import Router

logger = logging.getLogger("leanapi.routing")

CACHE_VERSION = 1


# -- Serialization --


def _handler_descriptor(route: Route) -> dict[str, Any]:
    handler = route.handler
    if isinstance(handler, ControllerHandler):
        target = qualified_name(handler.controller)
        if target is None:
            msg = (
                f"Route {route.method} {route.path}: controller "
                f"{handler.controller!r} is not importable by name"
            )
            raise RouteCacheError(msg)
        return {"kind": "controller", "target": target, "method": handler.method}

    target = qualified_name(handler.func)
    if target is None:
        msg = (
            f"Route {route.method} {route.path}: handler {handler.label!r} "
            f"is not importable by name (lambdas and closures can't be cached)"
        )
        raise RouteCacheError(msg)
    return {"kind": "function", "target": target}


def _middleware_descriptor(
    route: Route,
    spec: MiddlewareSpec,
    aliases: Mapping[str, MiddlewareSpec],
) -> dict[str, Any]:
    if isinstance(spec, str):
        return {"kind": "alias", "name": spec}

    target = qualified_name(spec)
    if target is not None:
        return {"kind": "class" if isinstance(spec, type) else "function", "target": target}

    for name, registered in aliases.items():
        if registered is spec:
            return {"kind": "alias", "name": name}

    msg = (
        f"Route {route.method} {route.path}: middleware {spec!r} can't be cached. "
        f"Register it with app.alias_middleware(name, ...) or pass its class."
    )
    raise RouteCacheError(msg)


def serialize_router(
    router: Router,
    aliases: Mapping[str, MiddlewareSpec] | None = None,
) -> dict[str, Any]:
    """Return the JSON-ready cache document for *router*."""
    aliases = aliases or {}
    routes: dict[str, list[dict[str, Any]]] = {}
    for method, entries in router.table.items():
        routes[method] = [
            {
                "template": route.template,
                "path": route.path,
                "regex": route.pattern.source,
                "params": list(route.pattern.param_names),
                "groups": list(route.pattern.group_indexes),
                "handler": _handler_descriptor(route),
                "middleware": [
                    _middleware_descriptor(route, spec, aliases) for spec in route.middleware
                ],
                "name": route.name,
            }
            for route in entries
        ]
    return {"version": CACHE_VERSION, "routes": routes}


def dump_route_cache(
    router: Router,
    path: str | os.PathLike[str],
    aliases: Mapping[str, MiddlewareSpec] | None = None,
) -> Path:
    """Write the cache for *router* to *path* atomically and return the path."""
    document = serialize_router(router, aliases)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=".routes-", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(
        "Route cache written",
        extra={"context": {"path": str(target), "routes": len(router)}},
    )
    return target


# -- Deserialization --


def _resolve(target: str, what: str) -> Any:
    try:
        return import_string(target)
    except (ImportError, AttributeError) as exc:
        msg = f"Route cache refers to {what} {target!r}, which can no longer be imported: {exc}"
        raise RouteCacheError(msg) from exc


def _load_handler(descriptor: Mapping[str, Any]) -> HandlerRef:
    kind = descriptor.get("kind")
    if kind == "function":
        return FunctionHandler(_resolve(descriptor["target"], "handler"))
    if kind == "controller":
        return ControllerHandler(_resolve(descriptor["target"], "controller"), descriptor["method"])
    msg = f"Unknown handler kind {kind!r} in route cache"
    raise RouteCacheError(msg)


def _load_middleware(descriptor: Mapping[str, Any]) -> MiddlewareSpec:
    kind = descriptor.get("kind")
    if kind == "alias":
        return descriptor["name"]
    if kind in ("class", "function"):
        return _resolve(descriptor["target"], "middleware")
    msg = f"Unknown middleware kind {kind!r} in route cache"
    raise RouteCacheError(msg)


def deserialize_router(document: Mapping[str, Any]) -> Router:
    """Rebuild a ``Router`` from a cache document."""
    if document.get("version") != CACHE_VERSION:
        msg = f"Unsupported route cache version {document.get('version')!r}"
        raise RouteCacheError(msg)

    routes: list[Route] = []
    try:
        for method, entries in document["routes"].items():
            for entry in entries:
                pattern = CompiledPattern.from_source(
                    entry["path"],
                    entry["regex"],
                    tuple(entry["params"]),
                    tuple(entry["groups"]),
                )
                routes.append(
                    Route(
                        method=method,
                        template=entry["template"],
                        path=entry["path"],
                        pattern=pattern,
                        handler=_load_handler(entry["handler"]),
                        middleware=tuple(_load_middleware(m) for m in entry["middleware"]),
                        name=entry.get("name"),
                    )
                )
    except RouteCacheError:
        raise
    except (ConfigurationError, KeyError, TypeError, AttributeError) as exc:
        msg = f"Route cache is malformed: {exc!r}"
        raise RouteCacheError(msg) from exc
    return Router(routes)


def load_route_cache(path: str | os.PathLike[str]) -> Router:
    """Read a cache file written by ``dump_route_cache``."""
    try:
        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, ValueError) as exc:
        msg = f"Cannot read route cache {os.fspath(path)!r}: {exc}"
        raise RouteCacheError(msg) from exc
    router = deserialize_router(document)
    logger.info(
        "Route cache loaded",
        extra={"context": {"path": os.fspath(path), "routes": len(router)}},
    )
    return router


def clear_route_cache(path: str | os.PathLike[str]) -> bool:
    """Delete the cache file. Returns True if a file was removed."""
    target = Path(path)
    if target.exists():
        target.unlink()
        return True
    return False
