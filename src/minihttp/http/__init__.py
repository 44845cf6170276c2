"""
HTTP protocol layer: request parsing, response writing, routing.

    from minihttp.http import Router, HTTPRequest, ResponseWriter
"""

from .request import (
    HTTPRequest,
    RequestParser,
    MalformedRequest,
    ConnectionClosed,
    parse_request,
)
from .response import (
    ResponseWriter,
    ConnectionResponseWriter,
    ResponseWriteError,
    BufferedResponseWriter,
    serialize_head,
    http_error,
    not_found,
)
from .router import Router, Route, Handler
from .status_codes import HTTPStatus, status_text
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "MalformedRequest",
    "ConnectionClosed",
    "parse_request",

    # Response writing
    "ResponseWriter",
    "ConnectionResponseWriter",
    "ResponseWriteError",
    "BufferedResponseWriter",
    "serialize_head",
    "http_error",
    "not_found",

    # Routing
    "Router",
    "Route",
    "Handler",

    # Status codes
    "HTTPStatus",
    "status_text",

    # MIME types
    "get_mime_type",
    "get_content_type",
]
