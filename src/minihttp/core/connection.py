"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for the lifetime of a single
request/response exchange.

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

There is no keep-alive: every connection goes through the same states
exactly once and is then closed.

    ACCEPTED ──► PARSING ──► DISPATCHING ──► RESPONDING ──► CLOSED
        │           │                                          ▲
        │           └── malformed request: 400 ────────────────┤
        └───────────────── read deadline / client gone ────────┘

=============================================================================
READING AND WRITING
=============================================================================

Reading goes through a buffered reader (io.BufferedReader). TCP delivers
bytes in arbitrary chunks; the buffered reader gives the request parser
readline() and read(n) on top of them, so the parser never has to know
where one recv() ended and the next began.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     READ DEADLINE, NOT READ TIMEOUT                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket.settimeout(10) bounds ONE recv(). A client sending a byte   │
    │   every 9 seconds never trips it.                                    │
    │                                                                      │
    │   The deadline is a point in time. Before every recv() the socket    │
    │   timeout is re-armed to whatever is left of it:                     │
    │                                                                      │
    │       remaining = deadline - now                                     │
    │       remaining <= 0  → socket.timeout                               │
    │       otherwise       → settimeout(remaining); recv_into(...)        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Writing goes straight to the socket with sendall(). send() may write only
part of the data when the kernel buffer is full; sendall() loops until
everything is out or the socket fails.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional
import io
import logging
import socket
import time
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its single request/response exchange."""

    ACCEPTED = "accepted"        # Just accepted, nothing read yet
    PARSING = "parsing"          # Reading the request off the socket
    DISPATCHING = "dispatching"  # Request parsed, picking the handler
    RESPONDING = "responding"    # Handler running, writing the response
    CLOSED = "closed"            # Socket released


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short identifier for log lines.
        state: Current ConnectionState.
        created_at: When the connection was accepted (time.time()).
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    _reader: Optional[BinaryIO] = field(default=None, repr=False)
    _deadline: Optional[float] = field(default=None, repr=False)

    def __post_init__(self):
        # The listening socket has a timeout; accepted sockets inherit it on
        # some platforms. Start from plain blocking mode.
        self.socket.settimeout(None)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def set_read_deadline(self, seconds: float) -> None:
        """
        Give the client a fixed amount of time to deliver the request.

        The deadline covers every read from now on taken together, not each
        recv() separately: a client trickling one byte at a time still runs
        out of time.
        """
        self._deadline = time.monotonic() + seconds

    def clear_read_deadline(self) -> None:
        """Drop the deadline and return the socket to blocking mode."""
        self._deadline = None
        self.socket.settimeout(None)

    def _arm_read_deadline(self) -> None:
        if self._deadline is None:
            return
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("read deadline exceeded")
        self.socket.settimeout(remaining)

    @property
    def reader(self) -> BinaryIO:
        """Buffered binary reader over the socket (created on first use)."""
        if self._reader is None:
            self._reader = io.BufferedReader(_DeadlineSocketReader(self))
        return self._reader

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Send all of data to the client.

        Raises:
            OSError: The client went away or the socket is broken. The
                     caller decides what that means; nothing is retried.
        """
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN so the client sees end-of-response.
        2. Drain for at most half a second in total: discard anything the
           client sent that we never read (e.g. bytes after a body with no
           Content-Length). Closing with unread data makes the kernel send
           RST, and the client can lose the response we just wrote.
        3. close(): release the file descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        self._deadline = time.monotonic() + 0.5
        try:
            drained = 0
            while drained < 64 * 1024:
                self._arm_read_deadline()
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # deadline or reset: closing anyway
        self._deadline = None

        if self._reader is not None:
            try:
                self._reader.close()
            except OSError:
                pass
            self._reader = None

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class _DeadlineSocketReader(io.RawIOBase):
    """
    Raw reader over a connection's socket that honors its read deadline.

    io.BufferedReader wraps it to provide readline() and read(n). Closing
    it leaves the socket open; Connection.close() owns that.
    """

    def __init__(self, connection: Connection):
        self._connection = connection

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self._connection._arm_read_deadline()
        return self._connection.socket.recv_into(buffer)
