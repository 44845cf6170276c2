"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions.

    GET  /        → home
    GET  /about   → about
    POST /submit  → submit
    (anything else) → fallback (404 by default, or e.g. static files)

=============================================================================
EXACT MATCHING
=============================================================================

Lookup is a dictionary hit on the literal method and path strings:

    routes = {
        "GET":  {"/": home, "/about": about},
        "POST": {"/submit": submit},
    }

No path parameters, no wildcards, no trailing-slash folding: "/about" and
"/about/" are different routes. With exact matching there is nothing to
search, so a two-level dict is all the structure we need (O(1) per lookup).

Routes are registered at startup and only read after the server starts
accepting connections, so lookups need no locking.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from .request import HTTPRequest
from .response import ResponseWriter, not_found


logger = logging.getLogger(__name__)


# Handler: takes the parsed request and a writer, returns nothing.
Handler = Callable[[HTTPRequest, ResponseWriter], None]


@dataclass(frozen=True)
class Route:
    """A registered (method, path) → handler entry."""

    method: str
    path: str
    handler: Handler


class Router:
    """
    Exact-match request router with a configurable fallback.

    Usage:
        router = Router()
        router.handle("GET", "/", home)

        @router.post("/submit")
        def submit(request, w):
            ...

        router.set_not_found_handler(static_files.handle)

        handler = router.resolve("GET", "/")   # → home
        handler = router.resolve("GET", "/x")  # → fallback
    """

    def __init__(self, not_found_handler: Optional[Handler] = None):
        self._routes: Dict[str, Dict[str, Handler]] = {}
        self._not_found_handler: Handler = not_found_handler or not_found

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def handle(self, method: str, path: str, handler: Handler) -> None:
        """
        Register a handler for an exact method and path.

        Registering the same pair again replaces the earlier handler.
        """
        by_path = self._routes.setdefault(method, {})
        if path in by_path:
            logger.debug(f"Replacing handler for {method} {path}")
        by_path[path] = handler

    def set_not_found_handler(self, handler: Handler) -> None:
        """Set the handler used when no route matches."""
        self._not_found_handler = handler

    @property
    def not_found_handler(self) -> Handler:
        return self._not_found_handler

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def resolve(self, method: str, path: str) -> Handler:
        """
        Find the handler for a request.

        Returns:
            The exact-match handler, or the fallback handler.
        """
        handler = self._routes.get(method, {}).get(path)
        if handler is None:
            return self._not_found_handler
        return handler

    def allowed_methods(self, path: str) -> List[str]:
        """Methods that have a route registered for this exact path."""
        return sorted(m for m, by_path in self._routes.items() if path in by_path)

    def routes(self) -> List[Route]:
        """All registered routes, sorted by path then method."""
        entries = [
            Route(method=method, path=path, handler=handler)
            for method, by_path in self._routes.items()
            for path, handler in by_path.items()
        ]
        return sorted(entries, key=lambda r: (r.path, r.method))

    def __len__(self) -> int:
        return sum(len(by_path) for by_path in self._routes.values())

    def __contains__(self, key: tuple) -> bool:
        method, path = key
        return path in self._routes.get(method, {})

    # =========================================================================
    # DECORATOR-STYLE REGISTRATION
    # =========================================================================
    #
    #     @router.get("/about")
    #     def about(request, w):
    #         ...
    #
    # is the same as router.handle("GET", "/about", about). The decorator
    # returns the function unchanged, so decorators can be stacked.
    #
    # =========================================================================

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.handle(method, path, handler)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("GET", path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("POST", path)

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PUT", path)

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("DELETE", path)

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PATCH", path)
