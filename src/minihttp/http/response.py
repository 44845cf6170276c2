"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Handlers don't build a response object and return it. They are handed a
ResponseWriter that is bound to the client connection and write to it:

    def home(request, w):
        w.set_header("Content-Type", "text/plain; charset=utf-8")
        w.write(b"Welcome to the homepage!")

The writer turns those calls into bytes on the wire in a fixed order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     RESPONSE WIRE FORMAT                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                    ← status line  ┐           │
    │    Content-Type: text/plain; ...\r\n      ← headers      ├ the HEAD  │
    │    Content-Length: 24\r\n                                │ (once!)   │
    │    \r\n                                   ← blank line   ┘           │
    │    Welcome to the homepage!               ← body bytes               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE ONE-SHOT HEAD
=============================================================================

The head can only go out once, and it must go out before any body byte.
The writer tracks this with a headers_written flag:

    set_header()      before flush: stored     after flush: ignored
    write_header(c)   first call: flush head   later calls: ignored
    write(data)       flushes head first if needed, then sends data

If a handler calls write() without having set Content-Length, the length
of that first write is used. Handlers that send their body in several
write() calls must set Content-Length themselves.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Dict, Union
import logging

from .status_codes import HTTPStatus, status_text


logger = logging.getLogger(__name__)


HTTP_VERSION = "HTTP/1.1"


class ResponseWriteError(OSError):
    """
    The response could not be written to the client.

    Raised by writers bound to a connection when the socket fails. Kept
    apart from other OSErrors so that a handler's own I/O failure (a
    missing file, say) is not mistaken for a client that went away.
    """


def serialize_head(
    status: int,
    headers: Dict[str, str],
    version: str = HTTP_VERSION,
) -> bytes:
    """
    Serialize a status line and header block.

    Args:
        status: Status code. Unknown codes get "Unknown Status".
        headers: Header name → value, emitted in insertion order.
        version: Protocol version for the status line.

    Returns:
        b"HTTP/1.1 200 OK\\r\\nName: Value\\r\\n\\r\\n"
    """
    lines = [f"{version} {int(status)} {status_text(status)}"]
    for name, value in headers.items():
        lines.append(f"{name}: {value}")
    lines.append("")
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


class ResponseWriter(ABC):
    """
    What a handler writes its response to.

    Subclasses only decide where bytes go (_send). All the ordering rules
    for the head live here, so every writer behaves the same way.
    """

    def __init__(self):
        self._headers: Dict[str, str] = {}
        self._status = int(HTTPStatus.OK)
        self._headers_written = False
        self._bytes_written = 0

    @abstractmethod
    def _send(self, data: bytes) -> None:
        """Put bytes on the wire (or wherever this writer writes)."""

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def status(self) -> int:
        """Status code that was (or will be) sent. 200 until changed."""
        return self._status

    @property
    def headers_written(self) -> bool:
        return self._headers_written

    @property
    def headers(self) -> Dict[str, str]:
        """Copy of the current header mapping."""
        return dict(self._headers)

    @property
    def bytes_written(self) -> int:
        """Body bytes written so far (head not included)."""
        return self._bytes_written

    # =========================================================================
    # HEAD
    # =========================================================================

    def set_header(self, name: str, value: str) -> None:
        """
        Set a response header.

        Once the head has been flushed this does nothing: the header could
        no longer reach the client.
        """
        if self._headers_written:
            logger.debug(f"Ignoring header {name!r}: headers already written")
            return
        self._headers[name] = str(value)

    def write_header(self, status: int) -> None:
        """
        Send the status line and headers.

        Only the first call has any effect.
        """
        if self._headers_written:
            return
        self._status = int(status)
        self._headers_written = True
        self._send(serialize_head(self._status, self._headers))

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, data: Union[bytes, str]) -> int:
        """
        Write body bytes, flushing the head first if needed.

        Args:
            data: Body bytes (str is encoded as UTF-8).

        Returns:
            Number of body bytes written.

        Raises:
            ResponseWriteError: The connection could not be written to.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        if not self._headers_written:
            if "Content-Length" not in self._headers:
                self._headers["Content-Length"] = str(len(data))
            self.write_header(self._status)

        if data:
            self._send(data)
            self._bytes_written += len(data)
        return len(data)

    def finish(self) -> None:
        """
        Make sure the client got at least a head.

        Called by the server after the handler returns. A handler that
        wrote nothing still produces a valid, empty response.
        """
        if self._headers_written:
            return
        self._headers.setdefault("Content-Length", "0")
        self.write_header(self._status)


class ConnectionResponseWriter(ResponseWriter):
    """
    ResponseWriter bound to a client Connection.

    Bytes go straight to the socket as they are written; nothing is
    buffered, so a large body is never held twice in memory.
    """

    def __init__(self, connection):
        super().__init__()
        self.connection = connection

    def _send(self, data: bytes) -> None:
        try:
            self.connection.send(data)
        except OSError as e:
            raise ResponseWriteError(f"Write to client failed: {e}") from e


class BufferedResponseWriter(ResponseWriter):
    """
    ResponseWriter that collects everything in memory.

    Useful for tests and for calling handlers without a socket:

        w = BufferedResponseWriter()
        home(request, w)
        assert w.body == b"Welcome to the homepage!"
    """

    def __init__(self):
        super().__init__()
        self._buffer = bytearray()
        self._head_size = 0

    def _send(self, data: bytes) -> None:
        if not self._buffer:
            self._head_size = len(data)
        self._buffer.extend(data)

    def getvalue(self) -> bytes:
        """Everything that would have been put on the wire."""
        return bytes(self._buffer)

    @property
    def body(self) -> bytes:
        return bytes(self._buffer[self._head_size:])


# =============================================================================
# ERROR RESPONSES
# =============================================================================

def http_error(w: ResponseWriter, code: int) -> None:
    """
    Write a plain-text error response such as "404 Not Found".

    Args:
        w: Writer to respond on.
        code: HTTP status code.
    """
    body = f"{int(code)} {status_text(code)}".encode("utf-8")
    w.set_header("Content-Type", "text/plain; charset=utf-8")
    w.set_header("Content-Length", str(len(body)))
    w.write_header(code)
    w.write(body)


def not_found(request, w: ResponseWriter) -> None:
    """Default fallback handler: 404 for anything without a route."""
    http_error(w, HTTPStatus.NOT_FOUND)
