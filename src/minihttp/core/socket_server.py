"""
=============================================================================
SOCKET SERVER: ACCEPT LOOP AND GRACEFUL SHUTDOWN
=============================================================================

Owns the listening socket, accepts connections, and gives each one its own
thread. Also owns the shutdown protocol.

=============================================================================
SERVER STATES
=============================================================================

    LISTENING ──(shutdown signal)──► DRAINING ──(in-flight == 0)──► TERMINATED

    LISTENING    accept() new connections, spawn a thread for each
    DRAINING     listening socket closed (new connects refused); wait for
                 running connections to finish
    TERMINATED   start() has returned

=============================================================================
THE POLLING ACCEPT LOOP
=============================================================================

A plain accept() blocks forever, so a loop built on it can never notice
that it should stop. Instead the listening socket gets a 1-second timeout
and the loop checks a cancellation flag between attempts:

    while True:
        if cancelled:                    ← checked every iteration
            wait for in-flight == 0
            return
        try:
            accept()                     ← returns within 1 second
        except timeout:
            continue                     ← not an error: just re-check
        except OSError:
            raise                        ← anything else is fatal

Shutdown is cooperative. Setting the flag never interrupts a handler that
is already running; it only stops new connections from being accepted.

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd, kill) set the
cancellation flag. Python only lets the main thread install signal
handlers, so when the server runs on another thread (tests, embedding)
shutdown() is the way to stop it.

=============================================================================
"""

from enum import Enum
from typing import Callable, Optional, Tuple
import logging
import signal
import socket
import threading

from ..config import ServerConfig
from .connection import Connection
from .waitgroup import WaitGroup


logger = logging.getLogger(__name__)


class ServerState(Enum):
    NEW = "new"
    LISTENING = "listening"
    DRAINING = "draining"
    TERMINATED = "terminated"


class SocketServer:
    """
    Low-level TCP accept loop with graceful drain.

    Usage:
        def handle(conn: Connection) -> None:
            ...                             # runs on its own thread

        server = SocketServer(config)
        server.start(handle)                # blocks until shut down

    From another thread:
        server.wait_until_ready()
        server.shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.state = ServerState.NEW

        self._socket: Optional[socket.socket] = None
        self._address: Tuple[str, int] = (config.host, config.port)

        # Cancellation flag, set by shutdown() or a signal handler
        self._cancelled = threading.Event()
        # Set once the socket is listening
        self._ready = threading.Event()
        # Set once start() has cleaned up
        self._stopped = threading.Event()

        # Connections whose thread has not finished yet
        self._in_flight = WaitGroup()

        self._original_handlers: dict = {}

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self.state == ServerState.LISTENING

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). Reflects the real port when port 0 was asked for."""
        return self._address

    @property
    def in_flight(self) -> int:
        """Connections currently being handled."""
        return self._in_flight.count

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until start() has returned. False on timeout."""
        return self._stopped.wait(timeout)

    # =========================================================================
    # SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Allow immediate restart while old sockets sit in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # accept() gives up after this long so the loop can check for shutdown
        sock.settimeout(self.config.accept_timeout)
        return sock

    def _setup_signals(self) -> None:
        if not self.config.install_signal_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, self._on_signal)

    def _on_signal(self, signum, frame) -> None:
        logger.info(
            f"Received {signal.Signals(signum).name}, "
            f"stopping new connections"
        )
        self.shutdown()

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    def start(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Bind, listen and accept connections until shut down.

        Blocks. Returns once shutdown was requested and every in-flight
        connection has finished.

        Args:
            connection_handler: Called on a fresh thread for each accepted
                                Connection. The connection is closed by the
                                handler (or its context manager).

        Raises:
            OSError: Bind/listen failed, or accept() failed for a reason
                     other than its polling timeout.
        """
        self._socket = self._create_socket()
        try:
            try:
                self._socket.bind((self.config.host, self.config.port))
            except OSError as e:
                logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
                raise

            self._socket.listen(self.config.backlog)
            self._address = self._socket.getsockname()[:2]
            self.state = ServerState.LISTENING
            self._setup_signals()
            self._ready.set()

            logger.info(f"Server listening on {self._address[0]}:{self._address[1]}")
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while True:
            if self._cancelled.is_set():
                # Refuse new connections while the old ones finish
                self._close_listener()
                self._drain()
                return

            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                logger.error(f"Accept error: {e}")
                raise

            conn = Connection(socket=client_socket, address=client_address[:2])
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")
            self._spawn(connection_handler, conn)

    def _spawn(self, connection_handler: Callable[[Connection], None], conn: Connection) -> None:
        # Count the connection before its thread exists, so a drain that
        # starts right now still waits for it.
        self._in_flight.add()
        thread = threading.Thread(
            target=self._run_connection,
            args=(connection_handler, conn),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as e:
            self._in_flight.done()
            logger.error(f"[{conn.id}] Could not start connection thread: {e}")
            conn.close()

    def _run_connection(self, connection_handler: Callable[[Connection], None], conn: Connection) -> None:
        try:
            connection_handler(conn)
        except Exception:
            # Contained to this connection; the server keeps accepting.
            logger.exception(f"[{conn.id}] Unhandled error in connection handler")
            conn.close()
        finally:
            self._in_flight.done()

    def _drain(self) -> None:
        self.state = ServerState.DRAINING
        pending = self._in_flight.count
        logger.info(f"Draining {pending} in-flight connection(s)...")

        if not self._in_flight.wait(self.config.drain_timeout):
            logger.warning(
                f"Drain timed out with {self._in_flight.count} connection(s) still running"
            )
        else:
            logger.info("All connections finished")

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> None:
        """
        Request a graceful shutdown.

        Safe to call from any thread, a signal handler, or more than once.
        Returns immediately; use wait_for_shutdown() to wait for the drain.
        """
        if not self._cancelled.is_set():
            logger.info("Shutdown requested")
        self._cancelled.set()

    def _close_listener(self) -> None:
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

    def _cleanup(self) -> None:
        self._restore_signals()
        self._close_listener()

        self.state = ServerState.TERMINATED
        self._stopped.set()
        logger.info("Socket server stopped")
