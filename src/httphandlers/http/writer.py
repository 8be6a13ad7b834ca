"""
=============================================================================
RESPONSE WRITERS AND THE DECORATOR CHAIN
=============================================================================

A handler does not return a response object. It receives a *writer* and
pushes the response through it:

    def hello(writer: ResponseWriter, request: HTTPRequest) -> None:
        writer.headers.set("Content-Type", "text/plain; charset=utf-8")
        writer.write_header(200)
        writer.write(b"hello")

Middleware adds behavior by handing the inner handler a *decorated* writer
that wraps the one it received:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       DECORATOR CHAIN                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler receives ─► UserResponseWriter      (identity attached)   │
    │                            │ wrapped_writer()                        │
    │                            ▼                                         │
    │                       GzipResponseWriter      (body → gzip)         │
    │                            │ wrapped_writer()                        │
    │                            ▼                                         │
    │                       BufferedResponseWriter  (owned by server)     │
    │                                                                      │
    │   Body bytes flow DOWN the chain (outward, towards the client).     │
    │   Traversal also walks DOWN, from the head the handler holds.       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every decorator owns exactly one inner writer, is created for one request
and dropped when its middleware returns. Chains are therefore acyclic and
short, and find_writer() can walk them to answer questions like "is gzip
already on?" or "who is the authenticated user?" without knowing every
decorator type that exists.

=============================================================================
THE WRITER CONTRACT
=============================================================================

    headers         Mutable Headers multimap. Only changes made BEFORE the
                    status is committed reach the client.
    write_header()  Commit the status code. Exactly once; later calls are
                    ignored with a warning.
    write()         Append body bytes. Commits 200 first if nothing was
                    committed yet.

=============================================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Tuple, runtime_checkable
import logging

from .headers import Headers
from .status_codes import HTTPStatus, status_phrase


logger = logging.getLogger(__name__)


class ResponseWriter(ABC):
    """Destination of one HTTP response: headers, one status, body bytes."""

    @property
    @abstractmethod
    def headers(self) -> Headers:
        """Response headers, mutable until the status is committed."""

    @abstractmethod
    def write_header(self, status: int) -> None:
        """Commit the response status code."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Append ``data`` to the body and return the number of bytes taken."""


@runtime_checkable
class WrappedWriter(Protocol):
    """
    Capability of a writer that decorates exactly one other writer.

    Any object with a ``wrapped_writer()`` method qualifies, whatever else
    it does; no base class is required. The method returns the writer
    *directly* beneath, never a deeper one.
    """

    def wrapped_writer(self) -> ResponseWriter: ...


class ResponseWriterDecorator(ResponseWriter):
    """
    Base for writer decorators: delegates everything to the inner writer.

    Subclasses override only the part of the contract they change, e.g.
    ``write`` for compression, or nothing at all when the decorator exists
    only to carry request-scoped state.
    """

    def __init__(self, writer: ResponseWriter):
        self._writer = writer

    def wrapped_writer(self) -> ResponseWriter:
        return self._writer

    @property
    def headers(self) -> Headers:
        return self._writer.headers

    def write_header(self, status: int) -> None:
        self._writer.write_header(status)

    def write(self, data: bytes) -> int:
        return self._writer.write(data)


# =============================================================================
# UNWRAP SEARCH
# =============================================================================
#
# Chains are acyclic by construction (each decorator is built around the
# writer its middleware received, right before calling inward). The depth
# bound turns a broken wrapped_writer() implementation into an error instead
# of an endless loop.
#
# =============================================================================

MAX_UNWRAP_DEPTH = 64


class UnwrapDepthError(RuntimeError):
    """Raised when a writer chain has more than MAX_UNWRAP_DEPTH decorators."""


WriterPredicate = Callable[[ResponseWriter], bool]


def find_writer(
    writer: ResponseWriter,
    predicate: WriterPredicate,
) -> Tuple[Optional[ResponseWriter], bool]:
    """
    Walk a decorator chain looking for a writer matching ``predicate``.

    Starts at ``writer`` itself, then follows ``wrapped_writer()`` while the
    current writer provides it.

    Args:
        writer: Head of the chain (the writer a handler received).
        predicate: Test applied to each writer, outermost first.

    Returns:
        ``(match, True)`` for the first matching writer, ``(None, False)``
        when the chain ends without a match.

    Raises:
        UnwrapDepthError: The chain did not end within MAX_UNWRAP_DEPTH.

    Example:
        gz, found = find_writer(w, lambda c: isinstance(c, GzipResponseWriter))
    """
    current = writer
    # MAX_UNWRAP_DEPTH decorators plus the writer at the bottom
    for _ in range(MAX_UNWRAP_DEPTH + 1):
        if predicate(current):
            return current, True
        if not isinstance(current, WrappedWriter):
            return None, False
        current = current.wrapped_writer()

    raise UnwrapDepthError(
        f"Writer chain exceeds {MAX_UNWRAP_DEPTH} decorators; "
        f"wrapped_writer() probably loops"
    )


# =============================================================================
# BUFFERED WRITER
# =============================================================================

class BufferedResponseWriter(ResponseWriter):
    """
    In-memory writer at the bottom of every chain.

    The server creates one per request, runs the handler chain against it
    and serializes it with to_bytes() once the chain returns. Tests use it
    directly to inspect what handlers produced.

    The committed header set is a snapshot taken at commit time, so
    late header changes (after the first body byte) are not sent:

        writer.write(b"x")                      # commits 200 + snapshot
        writer.headers.set("X-Late", "1")       # not in to_bytes()
    """

    def __init__(self):
        self._headers = Headers()
        self._sent_headers: Optional[Headers] = None
        self.status: Optional[int] = None
        self._body = bytearray()

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def committed(self) -> bool:
        return self.status is not None

    @property
    def sent_headers(self) -> Headers:
        """Headers as committed, or the live headers if nothing is committed."""
        if self._sent_headers is None:
            return self._headers
        return self._sent_headers

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def write_header(self, status: int) -> None:
        if self.committed:
            logger.warning(
                f"Superfluous write_header({status}); "
                f"status {self.status} already committed"
            )
            return
        self.status = int(status)
        self._sent_headers = self._headers.copy()

    def write(self, data: bytes) -> int:
        if not self.committed:
            self.write_header(HTTPStatus.OK)
        self._body += data
        return len(data)

    def to_bytes(
        self,
        server_name: str = "http-handlers/1.0",
        include_body: bool = True,
        extra_headers: Optional[Headers] = None,
    ) -> bytes:
        """
        Serialize as an HTTP/1.1 response.

            HTTP/1.1 200 OK\\r\\n             ← status line
            Content-Encoding: gzip\\r\\n
            Content-Length: 31\\r\\n          ← added if absent
            Date: Thu, 01 Jan 2026 ...\\r\\n  ← added if absent
            Server: http-handlers/1.0\\r\\n   ← added if absent
            \\r\\n
            <body>

        Args:
            server_name: Value for the Server header.
            include_body: False for HEAD responses (headers only).
            extra_headers: Transport headers (Connection, Keep-Alive) set
                after the handler returned; they replace same-named fields.

        A writer that was never committed serializes as 200 with an empty body.
        """
        status = self.status if self.status is not None else int(HTTPStatus.OK)
        headers = self.sent_headers.copy()
        for name in extra_headers or ():
            headers.set(name, extra_headers.get(name))

        if "Content-Length" not in headers:
            headers.set("Content-Length", str(len(self._body)))
        if "Date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if "Server" not in headers:
            headers.set("Server", server_name)

        lines = [f"HTTP/1.1 {status} {status_phrase(status)}"]
        for name, value in headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return head + bytes(self._body) if include_body else head


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Example: Thu, 01 Jan 2026 12:00:00 GMT. Always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
