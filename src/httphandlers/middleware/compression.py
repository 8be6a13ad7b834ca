"""
=============================================================================
GZIP COMPRESSION HANDLER
=============================================================================

Wraps any handler so that response bodies are gzip-encoded for clients that
ask for it, without the handler knowing anything about compression.

    handler = gzip_handler(hello)

=============================================================================
CONTENT NEGOTIATION
=============================================================================

    Request:
    ┌───────────────────────────────────────────────────────────────┐
    │ GET /api/data HTTP/1.1                                        │
    │ Accept-Encoding: gzip, deflate, br                            │
    └───────────────────────────────────────────────────────────────┘

    Response:
    ┌───────────────────────────────────────────────────────────────┐
    │ HTTP/1.1 200 OK                                               │
    │ Vary: Accept-Encoding      (always, compressed or not)        │
    │ Content-Encoding: gzip     (only when compressing)            │
    │ (no Content-Length from the handler: the size changes)        │
    │                                                               │
    │ [gzip stream]                                                 │
    └───────────────────────────────────────────────────────────────┘

Compression is opt-in from the client:

    HEAD request                            → passthrough
    no Accept-Encoding field                → passthrough
    a field value equal to "*"              → gzip
    a field value containing "gzip"         → gzip
    anything else ("deflate", "br", "")     → passthrough

=============================================================================
STREAMING, NOT BUFFERING
=============================================================================

The handler writes into a GzipResponseWriter. Every write goes through a
gzip.GzipFile whose output lands in the original writer, so large bodies are
never held twice in memory. The stream MUST be closed when the handler
returns, even if it raised, or the client receives a truncated stream with
no CRC trailer:

    gz_writer = GzipResponseWriter(writer)
    try:
        handler(gz_writer, request)
    finally:
        gz_writer.close()          # flush deflate state + write trailer

=============================================================================
INTERVIEW QUESTIONS ABOUT COMPRESSION
=============================================================================

Q: "What's the Vary header for?"
A: "Vary: Accept-Encoding tells caches the representation depends on the
   Accept-Encoding request header. Without it a shared cache could serve
   a gzipped body to a client that never asked for gzip. It is set even
   when this response is not compressed, because the NEXT one might be."

Q: "Why drop Content-Length?"
A: "A Content-Length set by the handler describes the uncompressed body.
   Once bytes are transformed the final size is unknown until the stream
   is closed; the transport computes it (or uses chunked encoding)."

Q: "What if the middleware is applied twice?"
A: "The second layer walks the writer chain, finds a GzipResponseWriter
   and steps aside. Double compression would produce a body that clients
   decode once and then show as garbage."

=============================================================================
"""

from typing import List, Optional
import gzip
import logging

from ..http.headers import Headers
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter, ResponseWriterDecorator, find_writer
from .base import Handler


logger = logging.getLogger(__name__)


DEFAULT_LEVEL = 6


class _WriterStream:
    """File-like sink that forwards gzip output to a ResponseWriter."""

    def __init__(self, writer: ResponseWriter):
        self._writer = writer

    def write(self, data) -> int:
        return self._writer.write(bytes(data))

    def flush(self) -> None:
        pass


class GzipResponseWriter(ResponseWriterDecorator):
    """
    Writer decorator that gzip-encodes every body byte.

    Headers and status go straight to the wrapped writer, minus any
    Content-Length; only ``write`` is redirected through the compressor.

    The gzip stream is opened on the first write (or on close), not at
    construction: GzipFile emits its 10-byte header immediately, which would
    commit status 200 before the handler had a chance to choose a status.

    A 1xx, 204 or 304 status gets no gzip stream at all: Content-Encoding is
    dropped at commit and later body writes are discarded.
    """

    def __init__(self, writer: ResponseWriter, level: int = DEFAULT_LEVEL):
        super().__init__(writer)
        self.level = level
        self._stream: Optional[gzip.GzipFile] = None
        self._status: Optional[int] = None
        self._closed = False

    def _gzip_stream(self) -> gzip.GzipFile:
        if self._stream is None:
            # A handler may have set the uncompressed length after wrapping
            self.headers.delete("Content-Length")
            # The gzip header commits an implicit 200
            if self._status is None:
                self._status = HTTPStatus.OK
            # mtime=0 keeps output byte-identical across runs
            self._stream = gzip.GzipFile(
                filename="",
                mode="wb",
                compresslevel=self.level,
                fileobj=_WriterStream(self._writer),
                mtime=0,
            )
        return self._stream

    def write_header(self, status: int) -> None:
        self.headers.delete("Content-Length")
        if self._status is None:
            self._status = status
            if not body_allowed(status):
                self.headers.delete("Content-Encoding")
        super().write_header(status)

    def write(self, data: bytes) -> int:
        if self._status is not None and not body_allowed(self._status):
            logger.warning(f"Dropped {len(data)} body bytes after status {self._status}")
            return 0
        return self._gzip_stream().write(data)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Finish the gzip stream (deflate flush + CRC/size trailer). Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._stream is None and self._status is not None and not body_allowed(self._status):
            return
        self._gzip_stream().close()


def gzip_handler(handler: Handler, level: int = DEFAULT_LEVEL) -> Handler:
    """
    Wrap ``handler`` with gzip response compression.

    Args:
        handler: The handler whose responses are compressed.
        level: zlib compression level, 0 (store) to 9 (smallest).

    Returns:
        A handler that negotiates gzip per request.
    """
    if not 0 <= level <= 9:
        raise ValueError(f"gzip level must be 0-9, got {level}")

    def serve_gzip(writer: ResponseWriter, request: HTTPRequest) -> None:
        # Self-awareness: already compressing further down the chain
        if is_compressing(writer):
            handler(writer, request)
            return

        headers = writer.headers
        set_vary_header(headers)

        if request.method == "HEAD" or "Accept-Encoding" not in request.headers:
            handler(writer, request)
            return

        if not accepts_gzip(request.headers.get_all("Accept-Encoding")):
            logger.debug(f"No gzip support from client for {request.path}, sending identity")
            handler(writer, request)
            return

        set_gzip_headers(headers)
        gz_writer = GzipResponseWriter(writer, level)
        try:
            handler(gz_writer, request)
        finally:
            gz_writer.close()

    return serve_gzip


def body_allowed(status: int) -> bool:
    """False for 1xx, 204 and 304, which never carry a body (RFC 7230 3.3)."""
    if 100 <= status < 200:
        return False
    return status not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)


def is_compressing(writer: ResponseWriter) -> bool:
    """True if a GzipResponseWriter is reachable from ``writer``."""
    _, found = find_writer(writer, lambda w: isinstance(w, GzipResponseWriter))
    return found


def set_vary_header(headers: Headers) -> None:
    """Add ``Vary: Accept-Encoding`` unless some Vary value already lists it."""
    for value in headers.get_all("Vary"):
        tokens = [token.strip().lower() for token in value.split(",")]
        if "accept-encoding" in tokens:
            return
    headers.add("Vary", "Accept-Encoding")


def accepts_gzip(values: List[str]) -> bool:
    """True if any Accept-Encoding field value is "*" or mentions gzip."""
    for value in values:
        trimmed = value.strip(" ").lower()
        if trimmed == "*" or "gzip" in trimmed:
            return True
    return False


def set_gzip_headers(headers: Headers) -> None:
    # Content-Type stays whatever the handler sets further down
    headers.set("Content-Encoding", "gzip")
    headers.delete("Content-Length")
