"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Logs one line per request after the handler finishes:

    127.0.0.1 "GET /about" 200 OK 23B 0.41ms

Register it FIRST so it is the outermost layer. Its timing then covers
every other middleware and the handler:

    server.use(LoggingMiddleware())   # first = outermost
    server.use(auth)

The access log goes to its own logger, "minihttp.access", so it can be
routed or silenced separately from the server's diagnostic logs:

    logging.getLogger("minihttp.access").setLevel(logging.WARNING)

=============================================================================
"""

from dataclasses import dataclass, asdict
from typing import Optional
import json
import logging
import time

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter
from ..http.router import Handler
from ..http.status_codes import status_text


logger = logging.getLogger("minihttp.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    method: str
    path: str
    status_code: int
    status_text: str
    bytes_written: int
    duration_ms: float
    client_ip: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 3)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip or "-"} "{self.method} {self.path}" '
            f"{self.status_code} {self.status_text} "
            f"{self.bytes_written}B {self.duration_ms:.2f}ms"
        )


class LoggingMiddleware:
    """
    Request timing and access logging.

    A middleware object: calling it with the next handler returns the
    wrapped handler.

    Args:
        log_format: "text" (one human-readable line) or "json".
        log_level: Level for access-log records.
        skip_paths: Paths that are timed but never logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, next: Handler) -> Handler:
        def handler(request: HTTPRequest, w: ResponseWriter) -> None:
            start = time.perf_counter()
            try:
                next(request, w)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.error(
                    f"Request failed: {request.method} {request.path} "
                    f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
                )
                raise
            duration_ms = (time.perf_counter() - start) * 1000

            if request.path in self.skip_paths:
                return

            self._emit(RequestLog(
                method=request.method,
                path=request.path,
                status_code=w.status,
                status_text=status_text(w.status),
                bytes_written=w.bytes_written,
                duration_ms=duration_ms,
                client_ip=request.client_address[0],
            ))

        return handler

    def _emit(self, entry: RequestLog) -> None:
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
