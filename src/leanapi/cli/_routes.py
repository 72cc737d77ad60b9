"""``leanapi routes``: list the route table.

Prints every route with its method, full path, handler, and route
middleware, in dispatch order.
"""

import argparse
import sys

from leanapi.cli._resolve import load_app
from leanapi.errors import ConfigurationError
from leanapi.middleware.chain import describe


def run_routes(args: argparse.Namespace) -> None:
    """Freeze ``args.app`` and print a METHOD / PATH / HANDLER / MIDDLEWARE table."""
    app = load_app(args.app)

    try:
        router = app.router
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if not router.routes:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str, str]] = []
    for route in router.routes:
        handler_name = route.handler.label
        if route.name:
            handler_name = f"{handler_name} ({route.name})"
        middleware = ", ".join(describe(spec) for spec in route.middleware) or "-"
        rows.append((route.method, route.path, handler_name, middleware))

    headers = ("METHOD", "PATH", "HANDLER", "MIDDLEWARE")
    widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(3)]

    fmt = f"{{:<{widths[0]}}}  {{:<{widths[1]}}}  {{:<{widths[2]}}}  {{}}"
    print(fmt.format(*headers))
    print("-" * min(sum(widths) + 6 + len(headers[3]), 80))
    for row in rows:
        print(fmt.format(*row))
    print(f"\n{len(rows)} route(s), source: {app.route_source}")
