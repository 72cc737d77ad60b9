"""LeanAPI CLI: route inspection and route cache management.

Entry point registered as ``leanapi`` in ``pyproject.toml``::

    [project.scripts]
    leanapi = "leanapi.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``leanapi`` command."""
    parser = argparse.ArgumentParser(
        prog="leanapi",
        description="LeanAPI, a small framework for JSON APIs.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- leanapi routes ---------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )

    # -- leanapi route-cache ----------------------------------------------
    cache_parser = subparsers.add_parser("route-cache", help="Build or clear the route cache")
    cache_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )
    cache_parser.add_argument(
        "--output",
        default=None,
        help="Cache file path (defaults to the app's ROUTE_CACHE_PATH)",
    )
    cache_parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete the cache file instead of building it",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "routes":
        from leanapi.cli._routes import run_routes

        run_routes(args)
    elif args.command == "route-cache":
        from leanapi.cli._cache import run_route_cache

        run_route_cache(args)
