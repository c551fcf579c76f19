#!/usr/bin/env python
"""
CLI entry point for gridmock

    gridmock serve [--port N] [--host H]   Run the mock API server
    gridmock stop  [--port N] [--host H]   Ask a running server to shut down

PORT and the other settings are read from the environment / .env file;
command-line flags win.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from gridmock.client import MockServerClient
from gridmock.config import load_config
from gridmock.server import create_server
from gridmock.shared.logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridmock",
        description="Mock REST API server for frontend unit and e2e tests",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file (default: ./.env if present)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the mock API server")
    serve.add_argument("--port", type=int, default=None, help="Port to bind")
    serve.add_argument("--host", default=None, help="Interface to bind")
    serve.add_argument(
        "--no-reuse",
        action="store_true",
        help="Fail if the port is taken instead of reusing a healthy server",
    )

    stop = subparsers.add_parser("stop", help="Stop a running mock API server")
    stop.add_argument("--port", type=int, default=None, help="Port of the server")
    stop.add_argument("--host", default=None, help="Host of the server")
    return parser


def serve(args: argparse.Namespace) -> int:
    config = load_config(
        dotenv_path=args.env_file,
        port=args.port,
        host=args.host,
        reuse_existing=False if args.no_reuse else None,
    )
    configure_logging(level=config.log_level, log_file=config.log_file)
    logger.info(f"listen: {config.port}")

    server = create_server(config)
    try:
        return asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("👋 Shutting down...")
        return 0


def stop(args: argparse.Namespace) -> int:
    config = load_config(dotenv_path=args.env_file, port=args.port, host=args.host)
    configure_logging(level=config.log_level, log_file=config.log_file)
    with MockServerClient(config.base_url) as client:
        status = client.stop()
    print(f"shutdown statusCode: {status}")
    return 0 if status == 200 else 1


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the gridmock command"""
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        sys.exit(serve(args))
    sys.exit(stop(args))


if __name__ == "__main__":
    main()
