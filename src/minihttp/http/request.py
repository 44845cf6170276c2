"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads one HTTP/1.1 request off a byte stream and turns it into a
structured HTTPRequest.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /submit HTTP/1.1\r\n          ← request line (strict)        │
    │    ─┬── ───┬─── ────┬───                                             │
    │   Method  Path   Version                                             │
    │                                                                      │
    │    Host: localhost:8080\r\n           ← headers (permissive)         │
    │    Content-Length: 5\r\n                                             │
    │    \r\n                               ← blank line ends headers      │
    │                                                                      │
    │    hello                              ← exactly Content-Length bytes │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING POLICY
=============================================================================

STRICT request line:
    Split on single spaces. Anything other than exactly three tokens is
    rejected. "GET  / HTTP/1.1" (two spaces) is four tokens and fails too.

PERMISSIVE headers:
    A header line without a colon is skipped, not rejected. Names keep
    the case the client sent. A repeated header overwrites the earlier
    value (last write wins).

BODY framing:
    Only Content-Length is understood. No Content-Length means no body,
    even if the client keeps sending bytes. Chunked encoding is not
    supported.

=============================================================================
WHY PARSE FROM A STREAM?
=============================================================================

TCP is a byte stream. Rather than buffering until we think we have a full
request, the parser pulls exactly what it needs from a buffered reader:

    readline()  → request line
    readline()  → header, header, ..., blank line
    read(n)     → body

A socket wrapped with sock.makefile("rb") gives us that reader, and
io.BytesIO gives tests the exact same interface with no socket at all.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Optional
import io
import re


CONTENT_LENGTH = "Content-Length"

# Content-Length is a run of ASCII digits. int() alone would also accept
# "+5", " 5", "5_000" and non-ASCII digits.
_DIGITS = re.compile(r"[0-9]+")


class MalformedRequest(Exception):
    """
    Raised when the bytes on the wire are not a request we can serve.

    Carries the HTTP status the server should answer with before closing
    the connection:

        400 Bad Request       - bad request line, bad header framing,
                                invalid Content-Length, read failure
        413 Payload Too Large - body larger than the configured limit
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class ConnectionClosed(MalformedRequest):
    """The stream ended (or failed) before a complete request arrived."""


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Built once per connection by RequestParser and never modified after
    that (frozen dataclass). Handlers receive it together with a response
    writer.

    Attributes:
        method:     Request method token, as sent ("GET", "POST", ...).
        path:       Request target, as sent. Not decoded or normalized.
        version:    Protocol version string ("HTTP/1.1").
        headers:    Header name → value. Names keep their original case.
        body:       Raw body bytes, exactly Content-Length long.
        connection: The Connection the request arrived on, if any. Used for
                    low-level access (client address) only. The request
                    does not own it.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    connection: Optional[Any] = field(default=None, repr=False, compare=False)

    def get_header(self, name: str, default: str = "") -> str:
        """
        Look a header up regardless of case.

        The headers mapping itself is case-sensitive; this helper is for
        handlers that don't care whether the client sent "content-type"
        or "Content-Type".
        """
        if name in self.headers:
            return self.headers[name]
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def content_length(self) -> int:
        """Length of the body that was read."""
        return len(self.body)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    @property
    def client_address(self) -> tuple[str, int]:
        """(ip, port) of the peer, or ("", 0) when detached from a socket."""
        if self.connection is None:
            return ("", 0)
        return self.connection.address


class RequestParser:
    """
    Parses one HTTP request from a binary stream.

    ==========================================================================
    PARSER FLOW
    ==========================================================================

        stream
          │
          ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. readline() request line ──► 3 tokens? ── no ──► Malformed     │
        │  2. readline() until blank  ──► "Name: Value" → headers dict      │
        │  3. Content-Length?         ──► digits? ── no ──► Malformed       │
        │  4. read(n) body            ──► short read ──► ConnectionClosed   │
        └───────────────────────────────────────────────────────────────────┘
          │
          ▼
        HTTPRequest

    ==========================================================================
    LIMITS
    ==========================================================================

    max_line_size:    longest request line or header line we will buffer.
    max_header_count: most header lines we will accept.
    max_body_size:    largest Content-Length we will read (413 above it).

    ==========================================================================
    """

    def __init__(
        self,
        max_line_size: int = 8192,
        max_header_count: int = 100,
        max_body_size: int = 10 * 1024 * 1024,
    ):
        self.max_line_size = max_line_size
        self.max_header_count = max_header_count
        self.max_body_size = max_body_size

    def parse(self, stream: BinaryIO, connection: Optional[Any] = None) -> HTTPRequest:
        """
        Read and parse a single request.

        Args:
            stream: Binary reader with readline(limit) and read(n).
            connection: Owning Connection, stored as a back-reference.

        Returns:
            The parsed HTTPRequest.

        Raises:
            ConnectionClosed: The stream ended or failed mid-request.
            MalformedRequest: The request is syntactically invalid.
        """
        # ─────────────────────────────────────────────────────────────────
        # REQUEST LINE
        # ─────────────────────────────────────────────────────────────────
        request_line = self._read_line(stream, "request line")
        method, path, version = self._parse_request_line(request_line)

        # ─────────────────────────────────────────────────────────────────
        # HEADERS
        # ─────────────────────────────────────────────────────────────────
        headers = self._read_headers(stream)

        # ─────────────────────────────────────────────────────────────────
        # BODY
        # ─────────────────────────────────────────────────────────────────
        body = b""
        length = self._content_length(headers)
        if length > 0:
            body = self._read_body(stream, length)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            connection=connection,
        )

    def _read_line(self, stream: BinaryIO, what: str) -> str:
        """
        Read one line and strip its terminator.

        Both CRLF and a bare LF are accepted as terminators; surrounding
        whitespace is trimmed.
        """
        try:
            raw = stream.readline(self.max_line_size + 1)
        except OSError as e:
            raise ConnectionClosed(f"Read failed on {what}: {e}") from e

        if not raw.endswith(b"\n"):
            if len(raw) > self.max_line_size:
                raise MalformedRequest(f"{what.capitalize()} too long")
            raise ConnectionClosed(f"Connection closed before {what} was complete")

        return raw.decode("latin-1").strip()

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        parts = line.split(" ")
        if len(parts) != 3:
            raise MalformedRequest(f"Malformed request line: {line!r}")
        method, path, version = parts
        return method, path, version

    def _read_headers(self, stream: BinaryIO) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        count = 0

        while True:
            line = self._read_line(stream, "headers")
            if not line:
                return headers

            count += 1
            if count > self.max_header_count:
                raise MalformedRequest("Too many headers")

            name, sep, value = line.partition(":")
            if not sep:
                continue  # no colon: skip
            name = name.strip()
            if not name:
                continue
            headers[name] = value.strip()

    def _content_length(self, headers: Dict[str, str]) -> int:
        """
        Get the declared body length.

        The lookup ignores case so that "content-length" from a lowercase
        client still frames the body correctly.
        """
        value = headers.get(CONTENT_LENGTH)
        if value is None:
            for name, candidate in headers.items():
                if name.lower() == "content-length":
                    value = candidate
        if value is None:
            return 0

        if not _DIGITS.fullmatch(value):
            raise MalformedRequest(f"Invalid Content-Length: {value!r}")

        length = int(value)
        if length > self.max_body_size:
            raise MalformedRequest(
                f"Body too large: {length} bytes",
                status_code=413,
            )
        return length

    def _read_body(self, stream: BinaryIO, length: int) -> bytes:
        # BufferedReader.read(n) keeps reading until n bytes or EOF.
        try:
            body = stream.read(length)
        except OSError as e:
            raise ConnectionClosed(f"Read failed on body: {e}") from e

        if body is None or len(body) < length:
            received = 0 if body is None else len(body)
            raise ConnectionClosed(
                f"Incomplete body: expected {length} bytes, got {received}"
            )
        return body


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(data: bytes, **limits: int) -> HTTPRequest:
    """
    Parse a request held entirely in memory.

    Args:
        data: Raw request bytes.
        **limits: Forwarded to RequestParser (max_line_size, ...).

    Returns:
        Parsed HTTPRequest.
    """
    return RequestParser(**limits).parse(io.BytesIO(data))
