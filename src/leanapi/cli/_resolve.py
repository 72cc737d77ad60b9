"""Turn ``"package.module:name"`` targets into App instances for the CLI."""

import importlib
import os
import sys

from leanapi.app import App


def resolve_app(import_string: str) -> App:
    """Import the target and return the App it names.

    ``"myapp"`` means ``"myapp:app"``. If the named object is a plain
    callable it is called once with no arguments and must return an App.

    Raises:
        ModuleNotFoundError: The module part cannot be imported.
        AttributeError: The module has no such attribute.
        TypeError: The target is neither an App nor a factory producing one.
    """
    module_name, _, attr = import_string.partition(":")
    target = getattr(importlib.import_module(module_name), attr or "app")

    if not isinstance(target, App) and callable(target):
        try:
            target = target()
        except Exception as exc:
            raise TypeError(f"app factory {import_string!r} failed: {exc}") from exc

    if isinstance(target, App):
        return target
    raise TypeError(f"{import_string!r} is a {type(target).__name__}, expected a leanapi.App")


def load_app(import_string: str) -> App:
    """Like ``resolve_app``, but report failures on stderr and exit with status 1.

    The working directory is importable, as it is under ASGI servers.
    """
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    try:
        return resolve_app(import_string)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
