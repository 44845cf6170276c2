"""
Unit tests for HTTP request parsing.
"""

import io

import pytest

from minihttp.http.request import (
    HTTPRequest,
    RequestParser,
    MalformedRequest,
    ConnectionClosed,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(io.BytesIO(sample_get_request))

        assert request.method == "GET"
        assert request.path == "/api/users?page=1"
        assert request.version == "HTTP/1.1"
        assert request.body == b""

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.headers == {
            "Host": "localhost:8080",
            "User-Agent": "pytest",
            "Accept": "text/plain",
        }

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with a body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/submit"
        assert request.body == b'{"name": "John"}'
        assert request.content_length == 16

    def test_binary_body_is_byte_exact(self):
        """CR, LF and NUL inside the body are data, not framing."""
        payload = bytes(range(256)) + b"\r\n\r\n\x00"
        stream = io.BytesIO(
            b"POST /upload HTTP/1.1\r\n"
            + f"Content-Length: {len(payload)}\r\n".encode("ascii")
            + b"\r\n"
            + payload
        )

        request = RequestParser().parse(stream)

        assert request.body == payload
        assert request.content_length == len(payload)

    def test_body_stops_at_content_length(self):
        """Bytes after the declared length are not part of the body."""
        stream = io.BytesIO(
            b"POST /submit HTTP/1.1\r\nContent-Length: 5\r\n\r\nhelloEXTRA"
        )
        request = RequestParser().parse(stream)

        assert request.body == b"hello"
        assert stream.read() == b"EXTRA"

    def test_no_content_length_means_empty_body(self):
        request = parse_request(b"POST /submit HTTP/1.1\r\n\r\nignored")
        assert request.body == b""

    def test_lowercase_content_length_frames_body(self):
        request = parse_request(
            b"POST /submit HTTP/1.1\r\ncontent-length: 3\r\n\r\nabc"
        )
        assert request.body == b"abc"

    def test_bare_lf_line_endings(self):
        request = parse_request(b"GET /about HTTP/1.1\nHost: test\n\n")

        assert request.path == "/about"
        assert request.headers == {"Host": "test"}

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_header_values_are_trimmed(self):
        request = parse_request(b"GET / HTTP/1.1\r\nX-Pad:    spaced   \r\n\r\n")
        assert request.headers["X-Pad"] == "spaced"

    def test_header_value_keeps_later_colons(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: localhost:8080\r\n\r\n")
        assert request.headers["Host"] == "localhost:8080"

    def test_header_without_colon_is_skipped(self):
        request = parse_request(
            b"GET / HTTP/1.1\r\nnot a header\r\nHost: test\r\n\r\n"
        )
        assert request.headers == {"Host": "test"}

    def test_duplicate_header_last_wins(self):
        request = parse_request(
            b"GET / HTTP/1.1\r\nX-Id: first\r\nX-Id: second\r\n\r\n"
        )
        assert request.headers == {"X-Id": "second"}

    def test_header_names_keep_case(self):
        request = parse_request(b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n")

        assert "CONTENT-TYPE" in request.headers
        assert "Content-Type" not in request.headers

    @pytest.mark.parametrize("line", [
        b"BADREQUEST",
        b"GET /",
        b"GET / HTTP/1.1 extra",
        b"",
    ])
    def test_malformed_request_line(self, line: bytes):
        """Anything but three space-separated tokens is rejected."""
        with pytest.raises(MalformedRequest) as exc_info:
            parse_request(line + b"\r\n\r\n")

        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("value", [b"abc", b"-1", b"1.5", b""])
    def test_invalid_content_length(self, value: bytes):
        with pytest.raises(MalformedRequest) as exc_info:
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n")

        assert exc_info.value.status_code == 400
        assert not isinstance(exc_info.value, ConnectionClosed)

    def test_body_too_large(self):
        """Test that oversized bodies are rejected with 413."""
        parser = RequestParser(max_body_size=10)
        raw = b"POST / HTTP/1.1\r\nContent-Length: 11\r\n\r\n" + b"A" * 11

        with pytest.raises(MalformedRequest) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 413

    def test_line_too_long(self):
        parser = RequestParser(max_line_size=64)
        raw = b"GET / HTTP/1.1\r\nX-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(MalformedRequest) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 400
        assert not isinstance(exc_info.value, ConnectionClosed)

    def test_too_many_headers(self):
        parser = RequestParser(max_header_count=2)
        raw = b"GET / HTTP/1.1\r\nA: 1\r\nB: 2\r\nC: 3\r\n\r\n"

        with pytest.raises(MalformedRequest):
            parser.parse(io.BytesIO(raw))

    def test_eof_before_request_line(self):
        with pytest.raises(ConnectionClosed):
            parse_request(b"")

    def test_eof_before_blank_line(self):
        with pytest.raises(ConnectionClosed):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_short_body(self):
        with pytest.raises(ConnectionClosed):
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nshort")

    def test_read_error_is_connection_closed(self):
        class BrokenStream:
            def readline(self, limit=-1):
                raise TimeoutError("timed out")

        with pytest.raises(ConnectionClosed):
            RequestParser().parse(BrokenStream())

    def test_connection_back_reference(self):
        class FakeConnection:
            address = ("10.0.0.5", 40000)

        conn = FakeConnection()
        request = RequestParser().parse(io.BytesIO(b"GET / HTTP/1.1\r\n\r\n"), connection=conn)

        assert request.connection is conn
        assert request.client_address == ("10.0.0.5", 40000)


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_get_header_ignores_case(self):
        request = HTTPRequest(method="GET", path="/", headers={"content-type": "text/html"})

        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("CONTENT-TYPE") == "text/html"

    def test_text_decodes_body(self):
        request = HTTPRequest(method="POST", path="/", body="héllo".encode("utf-8"))
        assert request.text == "héllo"

    def test_client_address_without_connection(self):
        assert HTTPRequest(method="GET", path="/").client_address == ("", 0)

    def test_request_is_immutable(self):
        request = HTTPRequest(method="GET", path="/")

        with pytest.raises(AttributeError):
            request.path = "/other"
