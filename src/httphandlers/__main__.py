"""
=============================================================================
CLI ENTRY POINT
=============================================================================

Runs a demo handler behind the bundled middleware:

    python -m httphandlers                              # gzip + access log
    python -m httphandlers --port 3000
    python -m httphandlers --user alice:secret          # require Basic auth
    python -m httphandlers --user alice:s1 --user bob:s2 --realm demo
    python -m httphandlers --no-gzip --log-level DEBUG

Try it:

    curl -i --compressed http://127.0.0.1:8080/
    curl -i -u alice:secret http://127.0.0.1:8080/

Environment variables (HTTP_PORT, HTTP_AUTH_REALM, ...) set the defaults;
command-line flags override them.

=============================================================================
"""

import argparse
import hmac
import sys
from functools import partial
from typing import Dict, Optional, Tuple

from . import __version__
from .config import ServerConfig
from .http import HTTPRequest, ResponseWriter
from .middleware import (
    LoggingMiddleware,
    MiddlewarePipeline,
    basic_auth_handler,
    get_user,
    gzip_handler,
)
from .server import HTTPServer


def hello(writer: ResponseWriter, request: HTTPRequest) -> None:
    """Greets the authenticated user, or the world."""
    user, found = get_user(writer)
    name = user if found else "world"
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.write_header(200)
    writer.write(f"Hello, {name}! You asked for {request.path}\n".encode("utf-8"))


def parse_credentials(values) -> Dict[str, str]:
    """["alice:secret", ...] → {"alice": "secret"}."""
    users = {}
    for value in values or []:
        name, sep, password = value.partition(":")
        if not sep or not name:
            raise argparse.ArgumentTypeError(
                f"--user expects NAME:PASSWORD, got {value!r}"
            )
        users[name] = password
    return users


def make_authenticator(users: Dict[str, str]):
    """Authentication function over a fixed user table; identity is the name."""

    def authenticate(user: str, password: str) -> Tuple[Optional[str], bool]:
        expected = users.get(user)
        if expected is None:
            return None, False
        if not hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8")):
            return None, False
        return user, True

    return authenticate


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m httphandlers",
        description="Demo server for the gzip and Basic auth handlers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httphandlers                         # Run with defaults
  python -m httphandlers --port 3000             # Custom port
  python -m httphandlers --user alice:secret     # Require Basic auth
  python -m httphandlers --no-gzip               # Disable compression
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
        help=f"Port to listen on, 0 for any free port (default: {defaults.port})",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.max_workers,
        help=f"Number of worker threads (default: {defaults.max_workers})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # MIDDLEWARE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--user", "-u",
        action="append",
        metavar="NAME:PASSWORD",
        help="Accept these Basic credentials; repeatable. Without it, no auth.",
    )
    parser.add_argument(
        "--realm",
        default=defaults.auth_realm,
        help=f"Basic auth realm (default: {defaults.auth_realm!r})",
    )
    parser.add_argument(
        "--no-gzip",
        action="store_true",
        help="Do not compress responses",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"http-handlers {__version__}",
    )
    return parser


def build_handler(config: ServerConfig, users: Dict[str, str], use_gzip: bool = True):
    """Logging outermost, then auth (if any users), then gzip, then hello."""
    pipeline = MiddlewarePipeline()
    pipeline.add(LoggingMiddleware(log_format=config.log_format))
    if users:
        pipeline.add(partial(
            basic_auth_handler,
            authenticate=make_authenticator(users),
            realm=config.auth_realm,
        ))
    if use_gzip:
        pipeline.add(partial(gzip_handler, level=config.gzip_level))
    return pipeline.wrap(hello)


def main(argv=None):
    defaults = ServerConfig.from_env()
    parser = build_parser(defaults)
    args = parser.parse_args(argv)

    try:
        users = parse_credentials(args.user)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    config = defaults
    config.host = args.host
    config.port = args.port
    config.max_workers = args.workers
    config.auth_realm = args.realm
    config.log_level = args.log_level

    try:
        handler = build_handler(config, users, use_gzip=not args.no_gzip)
        server = HTTPServer(handler, config)
        server.run()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
