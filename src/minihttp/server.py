"""
=============================================================================
HTTP SERVER
=============================================================================

HTTPServer ties the pieces together. It holds the routing table and the
middleware chain, and tells the socket server what to do with every
accepted connection.

=============================================================================
REQUEST FLOW
=============================================================================

    SocketServer            HTTPServer._serve_connection (own thread)
    ────────────            ─────────────────────────────────────────
    accept() ──► thread ──► set 10s read deadline
                            parse request ───── malformed ──► 400, close
                                 │
                            router.resolve(method, path)
                                 │
                            middleware.wrap(handler)
                                 │
                            handler(request, ConnectionResponseWriter)
                                 │
                            finish() + close (always, no keep-alive)

=============================================================================
FAILURE CONTAINMENT
=============================================================================

Everything that goes wrong while serving one connection stays on that
connection's thread:

    MalformedRequest        → error response (400/413), close
    handler raises          → 500 if the head wasn't sent yet, close
    client gone (write)     → log, close silently

Only a failure of accept() itself stops the server.

=============================================================================
"""

from typing import Callable, Optional, Tuple
import logging

from .config import ServerConfig
from .core import Connection, ConnectionState, SocketServer
from .http import (
    ConnectionResponseWriter,
    Handler,
    HTTPStatus,
    MalformedRequest,
    ConnectionClosed,
    RequestParser,
    ResponseWriteError,
    Router,
    http_error,
)
from .middleware import Middleware, MiddlewareChain


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Minimal HTTP/1.1 server: one request per connection, one thread per
    connection.

    Usage:
        server = HTTPServer(ServerConfig(port=8080))
        server.use(LoggingMiddleware())

        @server.get("/")
        def home(request, w):
            w.set_header("Content-Type", "text/plain; charset=utf-8")
            w.write(b"Welcome to the homepage!")

        server.set_not_found_handler(StaticFileHandler("public").handle)
        server.run()        # blocks until SIGINT/SIGTERM or shutdown()

    Each HTTPServer owns its own router and middleware chain, so several
    can run in one process (tests do this).
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = Router()
        self._middleware = MiddlewareChain()
        self._parser = RequestParser(
            max_line_size=self.config.max_line_size,
            max_header_count=self.config.max_header_count,
            max_body_size=self.config.max_body_size,
        )
        self._socket_server = SocketServer(self.config)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewareChain:
        return self._middleware

    def handle(self, method: str, path: str, handler: Handler) -> "HTTPServer":
        """Register a handler for an exact method and path."""
        self._router.handle(method, path, handler)
        return self

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add middleware. The first one added is the outermost layer.

        Example:
            server.use(LoggingMiddleware()).use(auth)
        """
        self._middleware.use(middleware)
        return self

    def set_not_found_handler(self, handler: Handler) -> "HTTPServer":
        """Set the fallback for requests that match no route."""
        self._router.set_not_found_handler(handler)
        return self

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        return self._router.route(method, path)

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self._router.get(path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self._router.post(path)

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self._router.put(path)

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self._router.delete(path)

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self._router.patch(path)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def server_address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    def run(self) -> None:
        """
        Listen and serve until shut down (blocking).

        Returns after a shutdown signal once every in-flight connection
        has finished.

        Raises:
            OSError: The socket could not be bound, or accept() failed.
        """
        logger.info(
            f"Starting HTTP server on {self.config.host or '0.0.0.0'}:{self.config.port} "
            f"({len(self._router)} routes, {len(self._middleware)} middleware)"
        )
        self._socket_server.start(self._serve_connection)
        logger.info("Server stopped")

    def shutdown(self) -> None:
        """Stop accepting connections; run() returns after the drain."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_for_shutdown(timeout)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _serve_connection(self, conn: Connection) -> None:
        """
        Serve exactly one request on a connection, then close it.

        Runs on the connection's own thread.
        """
        with conn:
            conn.set_read_deadline(self.config.read_timeout)

            # ─────────────────────────────────────────────────────────────
            # PARSE
            # ─────────────────────────────────────────────────────────────
            conn.state = ConnectionState.PARSING
            try:
                request = self._parser.parse(conn.reader, connection=conn)
            except ConnectionClosed as e:
                logger.info(f"[{conn.id}] Error parsing request: {e}")
                self._send_error(conn, e.status_code)
                return
            except MalformedRequest as e:
                logger.warning(f"[{conn.id}] Error parsing request: {e}")
                self._send_error(conn, e.status_code)
                return
            finally:
                # The deadline bounds reading the request, not writing
                # the response.
                conn.clear_read_deadline()

            # ─────────────────────────────────────────────────────────────
            # DISPATCH
            # ─────────────────────────────────────────────────────────────
            conn.state = ConnectionState.DISPATCHING
            handler = self._middleware.wrap(
                self._router.resolve(request.method, request.path)
            )
            w = ConnectionResponseWriter(conn)

            # ─────────────────────────────────────────────────────────────
            # RESPOND
            # ─────────────────────────────────────────────────────────────
            conn.state = ConnectionState.RESPONDING
            try:
                handler(request, w)
                w.finish()
            except ResponseWriteError as e:
                logger.warning(f"[{conn.id}] Write failed: {e}")
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                if not w.headers_written:
                    self._send_error(conn, HTTPStatus.INTERNAL_SERVER_ERROR)

    def _send_error(self, conn: Connection, status: int) -> None:
        """Best-effort error response; a dead socket is not an error here."""
        try:
            http_error(ConnectionResponseWriter(conn), status)
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send {status} response: {e}")


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a server with the stock pages, access logging and static files.

    Routes:
        GET  /        home page
        GET  /about   about page
        POST /submit  echoes the posted body
        anything else static files from config.static_dir
    """
    from .handlers import StaticFileHandler, about, home, submit
    from .middleware import LoggingMiddleware

    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=server.config.log_format))

    server.handle("GET", "/", home)
    server.handle("GET", "/about", about)
    server.handle("POST", "/submit", submit)

    server.set_not_found_handler(StaticFileHandler(server.config.static_dir).handle)
    return server
