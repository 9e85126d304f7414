#!/usr/bin/env python3
"""
Warden API server.

Usage:
    WARDEN_JWT_SECRET=... warden-server --seed-roles
"""

import argparse
import sys

from aiohttp import web
from loguru import logger

from .api.app import build_user_manager, create_app, seed_default_roles
from .config import Settings


def configure_logging(level: str) -> None:
    """Replace loguru's default sink with one at ``level``."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}",
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warden RBAC API server")
    parser.add_argument("--host", help="Bind address (default: WARDEN_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: WARDEN_PORT or 4000)")
    parser.add_argument("--db", dest="db_path", help="SQLite database path")
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument("--seed-roles", action="store_true", help="Create the default roles if missing")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = Settings.from_env(
            host=args.host,
            port=args.port,
            db_path=args.db_path,
            log_level=args.log_level,
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)

    manager = build_user_manager(settings)
    if args.seed_roles:
        created = seed_default_roles(manager.assigner.roles)
        logger.info(f"Seeded roles: {', '.join(created) if created else 'none missing'}")

    app = create_app(settings, manager)

    logger.info(f"Starting Warden on {settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port, print=None, access_log=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
