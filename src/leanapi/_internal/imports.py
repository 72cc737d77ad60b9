"""Import-path helpers for persisted references.

The route cache stores handlers, controllers, and middleware classes as
``"module:qualname"`` strings and resolves them back on load.
"""

import importlib
from typing import Any


def qualified_name(obj: Any) -> str | None:
    """Return ``"module:qualname"`` for *obj*, or None if it can't be re-imported.

    Lambdas, closures (``<locals>`` in the qualname), and objects without
    a module are rejected because they can't be found again by import.
    """
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None)
    if not module or not qualname:
        return None
    if "<" in qualname:
        return None
    target = f"{module}:{qualname}"
    try:
        resolved = import_string(target)
    except (ImportError, AttributeError):
        return None
    return target if resolved is obj else None


def import_string(target: str) -> Any:
    """Resolve ``"module:qualname"`` to the object it names.

    Raises ``ImportError`` or ``AttributeError`` when the target is gone.
    """
    module_path, sep, qualname = target.partition(":")
    if not sep or not qualname:
        msg = f"Import target {target!r} must have the form 'module:qualname'"
        raise ImportError(msg)
    obj: Any = importlib.import_module(module_path)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj
