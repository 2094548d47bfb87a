#!/usr/bin/env python3
"""
roomsync CLI - Main entry point.

Usage:
    roomsync init                      # Write a default roomsync.yaml
    roomsync types                     # List built-in session types
    roomsync serve                     # Run the room broker
    roomsync serve --port 4000 --log-level debug
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .. import __version__
from ..behaviors import register_builtin_types
from ..config import DEFAULT_CONFIG_PATH, default_config_yaml, get_settings
from ..server.session_types import SessionTypeRegistry


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default configuration file."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    config_path.write_text(default_config_yaml())
    print(f"Created {config_path}")
    print("Next steps:")
    print("  roomsync serve   # Run the room broker")
    return 0


def cmd_types(args: argparse.Namespace) -> int:
    """List built-in session types."""
    registry = register_builtin_types(SessionTypeRegistry())

    for entry in registry.list_types():
        print(
            f"{entry['typeId']:<10} {entry['displayName']:<14} "
            f"{entry['minParticipants']}-{entry['maxParticipants']} participants  "
            f"{entry['description']}"
        )
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the room broker with uvicorn."""
    import uvicorn

    from ..server.app import configure_logging, create_app

    try:
        settings = get_settings(
            args.config,
            host=args.host,
            port=args.port,
            log_level=args.log_level,
        )
    except Exception as e:
        print(f"Error loading configuration: {e}")
        return 1

    configure_logging(settings.log_level)
    print(f"Starting roomsync on {settings.host}:{settings.port}{settings.ws_path}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="roomsync",
        description="roomsync - real-time room synchronization over WebSockets"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Write a default config file")
    init_parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config file path")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")

    # types
    subparsers.add_parser("types", help="List built-in session types")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the room broker")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", "-p", type=int, help="Bind port")
    serve_parser.add_argument("--config", "-c", default=None, help="Config file path")
    serve_parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Log level",
    )

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "types": cmd_types,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
