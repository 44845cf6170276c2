"""
=============================================================================
MINIHTTP - Minimal HTTP/1.1 Server on Raw Sockets
=============================================================================

A small HTTP/1.1 server built directly on TCP sockets: one request per
connection, one thread per connection, exact-match routing and a
middleware chain, with a graceful drain on SIGINT/SIGTERM.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m minihttp)
    ├── server.py            # HTTPServer: routes + middleware + lifecycle
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Low-level components
    │   ├── socket_server.py # Polling accept loop, signals, drain
    │   ├── connection.py    # Connection wrapper
    │   └── waitgroup.py     # In-flight connection counter
    ├── http/                # HTTP protocol components
    │   ├── request.py       # Request parsing
    │   ├── response.py      # ResponseWriter
    │   ├── router.py        # Exact-match routing with fallback
    │   ├── status_codes.py  # Status codes and reason phrases
    │   └── mime_types.py    # MIME type detection
    ├── middleware/          # Handler wrappers
    │   ├── base.py          # Middleware type and chain
    │   └── logging.py       # Access logging
    └── handlers/            # Request handlers
        ├── pages.py         # home / about / submit
        └── static.py        # Static file fallback

=============================================================================
QUICK START
=============================================================================

    from minihttp import HTTPServer, ServerConfig
    from minihttp.middleware import LoggingMiddleware

    server = HTTPServer(ServerConfig(port=8080))
    server.use(LoggingMiddleware())

    @server.get("/")
    def index(request, w):
        w.set_header("Content-Type", "text/plain; charset=utf-8")
        w.write(b"Hello, World!")

    server.run()        # Ctrl+C drains in-flight requests, then returns

=============================================================================
"""

__version__ = "0.1.0"

from .server import HTTPServer, create_app
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
