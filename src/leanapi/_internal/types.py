"""Shared type aliases used across leanapi modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Deferred route definition: receives the app and registers routes on it
RouteDefiner: TypeAlias = Callable[[Any], None]

# Lifecycle hook, sync or async, no arguments
Hook: TypeAlias = Callable[[], Any]
