"""
Stock page handlers served by the command-line server.
"""

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter


TEXT_PLAIN = "text/plain; charset=utf-8"


def home(request: HTTPRequest, w: ResponseWriter) -> None:
    w.set_header("Content-Type", TEXT_PLAIN)
    w.write(b"Welcome to the homepage!")


def about(request: HTTPRequest, w: ResponseWriter) -> None:
    w.set_header("Content-Type", TEXT_PLAIN)
    w.write(b"This is the about page.")


def submit(request: HTTPRequest, w: ResponseWriter) -> None:
    """Echo the posted body back to the client."""
    w.set_header("Content-Type", TEXT_PLAIN)
    w.write(b"Received your POST request with body:\n" + request.body)
