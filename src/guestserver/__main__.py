"""
Command-line entry point: ``python -m guestserver`` (or ``guestserver``).

Serves two demo routes so the server can be poked at with curl:

    GET /              → 200 "Hello, World!"
    GET /echo?<text>   → 200 with the raw query string echoed back
"""

import argparse
import sys
from typing import Optional

from . import __version__
from .config import LOG_FORMATS, ServerConfig
from .errors import GuestServerError
from .http.response import HTTPResponse, ok
from .server import new_server


def hello(query: Optional[str]) -> HTTPResponse:
    return HTTPResponse(200, "Hello, World!")


def echo(query: Optional[str]) -> HTTPResponse:
    return ok(query or "")


def build_parser() -> argparse.ArgumentParser:
    defaults = ServerConfig.from_env()

    parser = argparse.ArgumentParser(
        prog="guestserver",
        description="Minimal HTTP/1.1 server serving demo GET routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m guestserver                    # 127.0.0.1:8080
  python -m guestserver --port 3000
  python -m guestserver --host 0.0.0.0     # all interfaces
  curl 'http://127.0.0.1:8080/echo?q=term'
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=defaults.read_timeout,
        help=f"Seconds a client has to send its request (default: {defaults.read_timeout})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help="Logging level (default: %(default)s)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=defaults.log_format,
        help="Access log format (default: %(default)s)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"guestserver {__version__}",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        read_timeout=args.read_timeout,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    try:
        server = new_server(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    server.get("/", hello)
    server.get("/echo", echo)

    try:
        server.listen()
    except GuestServerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
