"""
=============================================================================
MINIHTTP CLI ENTRY POINT
=============================================================================

    # Run with defaults (all interfaces, port 8080)
    python -m minihttp

    # Custom listen address
    python -m minihttp 127.0.0.1:3000
    python -m minihttp --addr :3000

    # Serve static files from another directory
    python -m minihttp --static ./site

    # JSON access logs
    python -m minihttp --log-format json

    # Settings from the environment (command-line flags win)
    MINIHTTP_PORT=9000 MINIHTTP_LOG_LEVEL=DEBUG python -m minihttp

Ctrl+C (SIGINT) or SIGTERM stops accepting connections; the process exits
once every in-flight request has been answered.

=============================================================================
"""

from dataclasses import replace
import argparse
import logging
import os
import sys

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .server import create_app


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_ADDRESS = ":8080"


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr in the server's line format."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Minimal HTTP/1.1 server on raw sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                        # Listen on :8080
  python -m minihttp 127.0.0.1:3000         # Custom address
  python -m minihttp --static ./site        # Serve files from ./site
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "address",
        nargs="?",
        default=None,
        help="Listen address as host:port (default: :8080)"
    )

    parser.add_argument(
        "--addr", "-a",
        dest="addr",
        default=None,
        help="Listen address as host:port, empty host = all interfaces (default: :8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FEATURE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--static", "-s",
        default=None,
        help="Directory to serve static files from (default: public)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """
    Resolve the server configuration.

    MINIHTTP_* environment variables come first; anything given on the
    command line overrides them. With neither an address argument nor
    MINIHTTP_HOST/MINIHTTP_PORT set, the server listens on DEFAULT_ADDRESS.

    Raises:
        ValueError: An address, number or choice is invalid.
    """
    config = ServerConfig.from_env()

    address = args.address or args.addr
    if address is None and not ({"MINIHTTP_HOST", "MINIHTTP_PORT"} & set(os.environ)):
        address = DEFAULT_ADDRESS
    if address is not None:
        config = config.with_address(address)

    overrides = {
        name: value
        for name, value in (
            ("static_dir", args.static),
            ("log_level", args.log_level),
            ("log_format", args.log_format),
        )
        if value is not None
    }
    config = replace(config, **overrides)
    config.validate()
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logger = logging.getLogger("minihttp")

    try:
        config = build_config(args)
    except ValueError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {e}")
        return 2

    configure_logging(config.log_level)

    # The static fallback needs its root to exist
    os.makedirs(config.static_dir, exist_ok=True)

    try:
        server = create_app(config)
        server.run()
    except (OSError, ValueError) as e:
        logger.error(f"Server error: {e}")
        return 1
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    sys.exit(main())
