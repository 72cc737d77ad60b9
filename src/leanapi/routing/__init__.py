"""Routing: ordered route table with regex path templates.

Routes are registered through a ``RouteBuilder`` (optionally inside
prefix/middleware groups) and frozen into an immutable ``Router``, which
can also be persisted to and loaded from a route cache file.
"""

from leanapi.routing.builder import RouteBuilder
from leanapi.routing.pattern import CompiledPattern, compile_pattern
from leanapi.routing.route import (
    ControllerHandler,
    FunctionHandler,
    MethodMismatch,
    NoPathMatch,
    Route,
    RouteMatch,
)
from leanapi.routing.router import Router

__all__ = [
    "CompiledPattern",
    "ControllerHandler",
    "FunctionHandler",
    "MethodMismatch",
    "NoPathMatch",
    "Route",
    "RouteBuilder",
    "RouteMatch",
    "Router",
    "compile_pattern",
]
