"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable the server has lives in one dataclass, so a server can be
built from code, from the environment, or from a "host:port" string:

    ServerConfig(port=3000)
    ServerConfig.from_env()              # MINIHTTP_PORT=3000 ...
    ServerConfig.from_address(":8080")   # "host:port" listen address

Validation runs when the server is constructed, not when the first
request arrives: a bad port fails at startup.

=============================================================================
"""

import os
from dataclasses import dataclass, replace
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog
    TIMEOUTS     accept_timeout, read_timeout, drain_timeout
    LIMITS       max_line_size, max_header_count, max_body_size
    FILES        static_dir
    LOGGING      log_level, log_format
    PROCESS      install_signal_handlers

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" or "" - All network interfaces
    """

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free one (tests)."""

    backlog: int = 128
    """Queued connections the kernel holds before refusing new ones."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS
    # ─────────────────────────────────────────────────────────────────────

    accept_timeout: float = 1.0
    """
    How long one accept() call may block.
    The accept loop re-checks the shutdown flag every time this expires,
    so it is also the worst-case delay before shutdown is noticed.
    """

    read_timeout: float = 10.0
    """Deadline for reading a request once a connection is accepted."""

    drain_timeout: Optional[float] = None
    """
    How long shutdown waits for in-flight connections.
    None = wait until every one of them has finished.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_line_size: int = 8192
    """Longest request line or header line accepted (bytes)."""

    max_header_count: int = 100
    """Most header lines accepted in one request."""

    max_body_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest Content-Length accepted. Larger bodies get 413."""

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    static_dir: str = "public"
    """Directory the static-file fallback serves from."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    # ─────────────────────────────────────────────────────────────────────
    # PROCESS
    # ─────────────────────────────────────────────────────────────────────

    install_signal_handlers: bool = True
    """
    Catch SIGINT/SIGTERM and shut down gracefully.
    Only possible on the main thread; ignored elsewhere.
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

            MINIHTTP_HOST          Server host (default: 127.0.0.1)
            MINIHTTP_PORT          Server port (default: 8080)
            MINIHTTP_READ_TIMEOUT  Request read deadline (default: 10)
            MINIHTTP_STATIC_DIR    Static files directory (default: public)
            MINIHTTP_LOG_LEVEL     Logging level (default: INFO)
            MINIHTTP_LOG_FORMAT    Access log format (default: text)
        """
        return cls(
            host=os.getenv("MINIHTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("MINIHTTP_PORT", "8080")),
            read_timeout=float(os.getenv("MINIHTTP_READ_TIMEOUT", "10")),
            static_dir=os.getenv("MINIHTTP_STATIC_DIR", "public"),
            log_level=os.getenv("MINIHTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("MINIHTTP_LOG_FORMAT", "text"),
        )

    @classmethod
    def from_address(cls, address: str, **overrides) -> "ServerConfig":
        """
        Create configuration from a "host:port" listen address.

            ServerConfig.from_address(":8080")          # all interfaces
            ServerConfig.from_address("127.0.0.1:3000")
        """
        host, port = parse_address(address)
        return cls(host=host, port=port, **overrides)

    def with_address(self, address: str) -> "ServerConfig":
        """Copy of this configuration listening on another address."""
        host, port = parse_address(address)
        return replace(self, host=host, port=port)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: Describing the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")
        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")
        if self.drain_timeout is not None and self.drain_timeout <= 0:
            raise ValueError("drain_timeout must be > 0 or None")
        if self.max_line_size < 64:
            raise ValueError("max_line_size must be >= 64")
        if self.max_header_count < 1:
            raise ValueError("max_header_count must be >= 1")
        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown log format: {self.log_format}")


def parse_address(address: str) -> tuple[str, int]:
    """
    Split a "host:port" listen address.

    An empty host (":8080") means every interface.

    Raises:
        ValueError: No port, or a port that isn't a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Listen address needs a port: {address!r}")
    if not port.isdigit():
        raise ValueError(f"Invalid port in listen address: {address!r}")
    return host, int(port)
