"""``leanapi route-cache``: build or clear the route cache file."""

import argparse
import sys

from leanapi.cli._resolve import load_app
from leanapi.errors import ConfigurationError
from leanapi.routing.cache import clear_route_cache


def run_route_cache(args: argparse.Namespace) -> None:
    """Write the app's route table to the cache, or delete it with ``--clear``."""
    app = load_app(args.app)
    path = args.output or app.config.route_cache_path

    if args.clear:
        if clear_route_cache(path):
            print(f"Route cache cleared: {path}")
        else:
            print(f"No route cache at {path}")
        return

    try:
        written = app.build_route_cache(path)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    print(f"Route cache written: {written} ({len(app.router)} routes)")
