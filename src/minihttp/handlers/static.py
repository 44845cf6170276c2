"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files from a directory on disk. The command-line server installs it
as the router's fallback, so any request that matches no exact route is
looked up as a file:

    GET /            → route "/"          (home page)
    GET /style.css   → no route           → public/style.css
    GET /docs/       → no route           → public/docs/index.html
    GET /missing     → no route           → 404 Not Found

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

The request path is attacker-controlled:

    GET /../../etc/passwd HTTP/1.1

    (root_dir / "../../etc/passwd").resolve()  →  /etc/passwd

After resolving ".." components and symlinks, the result must still be
inside root_dir. If it isn't, the request gets 400 Bad Request and no file
is touched.

    full_path = (root_dir / user_input).resolve()
    full_path.relative_to(root_dir)  # Raises if outside root!

=============================================================================
"""

import logging
from pathlib import Path
from urllib.parse import unquote

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter, http_error
from ..http.status_codes import HTTPStatus
from ..http.mime_types import get_content_type


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for serving static files.

    =========================================================================
    FLOW
    =========================================================================

        Request: GET /css/style.css

        1. Only GET and HEAD are allowed (405 otherwise)
        2. Drop the query string and undo percent-encoding
        3. Resolve to a filesystem path inside root_dir (400 if it escapes)
        4. If directory: serve its index.html
        5. If file: send it with a Content-Type from its extension

    =========================================================================
    USAGE
    =========================================================================

        static = StaticFileHandler("public")
        router.set_not_found_handler(static.handle)

    =========================================================================
    """

    ALLOWED_METHODS = ("GET", "HEAD")

    def __init__(self, root_dir: str, index_file: str = "index.html"):
        """
        Args:
            root_dir: Directory to serve. Every served file must be inside it.
            index_file: File served for directory requests.

        Raises:
            ValueError: root_dir is not an existing directory.
        """
        # Resolve now so the containment check compares absolute paths
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def handle(self, request: HTTPRequest, w: ResponseWriter) -> None:
        """Serve the file the request path points at."""
        if request.method not in self.ALLOWED_METHODS:
            w.set_header("Allow", ", ".join(self.ALLOWED_METHODS))
            http_error(w, HTTPStatus.METHOD_NOT_ALLOWED)
            return

        # ─────────────────────────────────────────────────────────────────
        # URL PATH → RELATIVE FILE PATH
        # ─────────────────────────────────────────────────────────────────
        file_path = unquote(request.path.split("?", 1)[0]).lstrip("/")

        # ─────────────────────────────────────────────────────────────────
        # SECURITY: PATH TRAVERSAL CHECK
        # ─────────────────────────────────────────────────────────────────
        try:
            if "\x00" in file_path:
                raise ValueError("embedded null byte")
            full_path = (self.root_dir / file_path).resolve()
            full_path.relative_to(self.root_dir)
        except (OSError, ValueError):
            logger.warning(f"Rejected static path: {request.path}")
            http_error(w, HTTPStatus.BAD_REQUEST)
            return

        if full_path.is_dir():
            full_path = full_path / self.index_file

        if not full_path.is_file():
            http_error(w, HTTPStatus.NOT_FOUND)
            return

        self._serve_file(full_path, request, w)

    def _serve_file(self, path: Path, request: HTTPRequest, w: ResponseWriter) -> None:
        try:
            content = path.read_bytes()
        except PermissionError:
            http_error(w, HTTPStatus.FORBIDDEN)
            return

        w.set_header("Content-Type", get_content_type(path))
        w.set_header("Content-Length", str(len(content)))

        # HEAD gets the same head as GET and no body
        if request.method == "HEAD":
            w.write_header(HTTPStatus.OK)
            return
        w.write(content)
