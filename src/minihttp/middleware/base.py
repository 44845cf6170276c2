"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

A middleware is a function that takes a handler and returns a new handler
with some behavior wrapped around it:

    def timing(next):
        def handler(request, w):
            start = time.perf_counter()
            next(request, w)                 # ← call the inner handler once
            print(time.perf_counter() - start)
        return handler

It is the decorator pattern applied at runtime. Anything with that shape
works: a plain function, a closure factory, or an object with __call__
(see LoggingMiddleware).

=============================================================================
ORDER
=============================================================================

    chain.use(A)
    chain.use(B)
    handler = chain.wrap(H)          # A(B(H))

        ┌──────────────────────────────────────────┐
        │  A                                       │
        │  ┌────────────────────────────────────┐  │
        │  │  B                                 │  │
        │  │  ┌──────────────────────────────┐  │  │
        │  │  │           H                  │  │  │
        │  │  └──────────────────────────────┘  │  │
        │  └────────────────────────────────────┘  │
        └──────────────────────────────────────────┘

    Execution: A-before, B-before, H, B-after, A-after

First registered = outermost, so the first middleware sees the total time
of everything inside it. To get that nesting, wrap() folds the list from
the END: H is wrapped by B first, and the result is wrapped by A.

=============================================================================
THE CONTRACT
=============================================================================

A middleware must call next exactly once for the request to be handled.
The chain does not check this. Skipping next swallows the request;
calling it twice runs the handler twice. Both are bugs in the middleware.

=============================================================================
"""

from typing import Callable, Iterator, List
import logging

from ..http.router import Handler


logger = logging.getLogger(__name__)


# Middleware: handler in, handler out.
Middleware = Callable[[Handler], Handler]


class MiddlewareChain:
    """
    Ordered list of middleware, folded around a handler on demand.

    Built at startup and read-only once the server is accepting
    connections.

    Usage:
        chain = MiddlewareChain()
        chain.use(LoggingMiddleware())
        chain.use(timing)

        handler = chain.wrap(router.resolve(request.method, request.path))
        handler(request, w)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def use(self, middleware: Middleware) -> "MiddlewareChain":
        """
        Append a middleware. It runs inside everything registered before it.

        Returns:
            Self for method chaining.
        """
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {_name_of(middleware)}")
        return self

    def wrap(self, handler: Handler) -> Handler:
        """
        Wrap a handler in every registered middleware.

        Given [A, B, C] and H:

            current = H
            current = C(current)     # C calls H
            current = B(current)     # B calls C
            current = A(current)     # A calls B

        Returns:
            The composed handler. With no middleware, H itself.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware(current)
        return current

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


def _name_of(middleware: Middleware) -> str:
    return getattr(middleware, "__name__", type(middleware).__name__)
