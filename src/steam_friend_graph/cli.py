"""Command-line entry point: serve the friend graph API with uvicorn.

Run from the project root::

    steam-friend-graph --port 8080

Options:
    --host       Interface to bind (default: ``HOST`` setting, ``localhost``).
    --port       TCP port (default: ``PORT`` setting, ``8080``).
    --log-level  Logging verbosity (default: ``LOG_LEVEL`` setting).

The Steam Web API key is read from ``STEAM_KEY`` (environment or ``.env``).

Exit codes:
    0 — Server stopped cleanly.
    1 — Configuration error (e.g. ``STEAM_KEY`` missing).
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional, Sequence

import pydantic
import uvicorn

from steam_friend_graph.config.settings import get_settings


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``steam-friend-graph`` command."""
    parser = argparse.ArgumentParser(
        prog="steam-friend-graph",
        description="Serve one-hop Steam friend graphs over a WebSocket.",
    )
    parser.add_argument("--host", default=None, help="Interface to bind.")
    parser.add_argument("--port", type=int, default=None, help="TCP port to listen on.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging verbosity.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv*, load settings and run uvicorn until interrupted."""
    args = build_parser().parse_args(argv)

    # The app reads its log level from settings when uvicorn imports it.
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level
        get_settings.cache_clear()

    try:
        settings = get_settings()
    except pydantic.ValidationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    host = args.host or settings.host
    port = args.port or settings.port
    log_level = settings.log_level

    uvicorn.run(
        "steam_friend_graph.api.main:app",
        host=host,
        port=port,
        log_level=log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
