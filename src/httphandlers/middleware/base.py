"""
=============================================================================
HANDLERS, MIDDLEWARE AND THE PIPELINE
=============================================================================

A handler is any callable ``(writer, request) -> None``. A middleware is a
handler *constructor*: it takes the next handler and returns a new handler
that runs before (and around) it.

    gzip_handler(hello)                       # middleware applied by hand
    basic_auth_handler(gzip_handler(hello), authenticate, "api")

=============================================================================
CHAIN OF RESPONSIBILITY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │              CONTROL INWARD, BYTES OUTWARD                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request ───────────────────────────────────────────────►          │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │ Logging  │───►│  Basic   │───►│   GZIP   │───►│ Handler  │     │
    │   │          │    │   Auth   │    │          │    │          │     │
    │   └──────────┘    └──────────┘    └──────────┘    └──────────┘     │
    │     wraps w         wraps w         wraps w         writes to w    │
    │                                                                      │
    │   ◄─────────────────────────────────────────────── body bytes       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Each middleware decides whether to decorate the writer it received, then
calls the next handler with the original or the decorated writer. Any
middleware can short-circuit by writing a response itself and not calling
the next handler at all (that is how Basic auth answers 401).

=============================================================================
"""

from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter


logger = logging.getLogger(__name__)


# A handler receives the writer and the request; the response goes through
# the writer, nothing is returned.
Handler = Callable[[ResponseWriter, HTTPRequest], None]

# A middleware wraps a handler and returns a handler.
Middleware = Callable[[Handler], Handler]


class MiddlewarePipeline:
    """
    Composes several middleware around a final handler.

    First added = outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        pipeline.add(partial(basic_auth_handler, authenticate=check, realm="api"))
        pipeline.add(gzip_handler)

        handler = pipeline.wrap(hello)
        # == LoggingMiddleware()(basic_auth(gzip_handler(hello)))
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append a middleware; returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware_name(middleware)}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Add several middleware at once, in order."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: Handler) -> Handler:
        """
        Wrap ``handler`` with every middleware in the pipeline.

        Given [MW1, MW2, MW3] the result is MW1(MW2(MW3(handler))), built
        by wrapping in reverse so the first-added middleware runs first.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware(current)
        return current

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)


def middleware_name(middleware: Middleware) -> str:
    """Readable name for logs: function name, partial target or class name."""
    func = getattr(middleware, "func", middleware)  # functools.partial
    return getattr(func, "__name__", None) or type(middleware).__name__
