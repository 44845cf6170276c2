"""
Middleware: handler-wrapping functions for cross-cutting behavior.
"""

from .base import Middleware, MiddlewareChain
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewareChain",
    "LoggingMiddleware",
    "RequestLog",
]
