"""
=============================================================================
HOST SERVER
=============================================================================

A small threaded HTTP/1.1 server that runs ONE handler, usually a chain of
writer-decorating middleware around an application handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        REQUEST LIFECYCLE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept()  ──►  ThreadPoolExecutor worker                          │
    │                        │                                             │
    │                  Connection.read_request()                          │
    │                        │                                             │
    │                  RequestParser.parse()   ── HTTPParseError ─► 4xx    │
    │                        │                                             │
    │                  writer = BufferedResponseWriter()                  │
    │                  handler(writer, request) ── exception ─► 500        │
    │                        │                                             │
    │                  writer.to_bytes()  ──►  sendall()                   │
    │                        │                                             │
    │                  keep-alive? loop : close                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The buffered writer sits at the bottom of every decorator chain. Everything
above it (gzip, auth, access logging) only ever talks to a ResponseWriter,
so the same middleware runs unchanged against a test writer.

=============================================================================
INTERVIEW QUESTIONS
=============================================================================

Q: "Why buffer the whole response instead of streaming it?"
A: "Content-Length can be set exactly, and a handler that fails halfway is
   replaced by a clean 500 instead of a truncated body. The cost is memory
   per in-flight response, which is fine for a server of this size."

Q: "How does shutdown stop a blocking accept()?"
A: "The listening socket has a 1 second timeout; the loop re-checks the
   running flag every time accept() times out."

=============================================================================
"""

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, ConnectionState
from .http import (
    BufferedResponseWriter,
    HTTPParseError,
    HTTPStatus,
    RequestParser,
    status_phrase,
)
from .http.headers import Headers
from .http.request import request_summary
from .middleware import Handler


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server for a single handler.

    Usage:
        def hello(writer, request):
            writer.write(b"hello")

        server = HTTPServer(gzip_handler(hello), ServerConfig(port=8080))
        server.run()          # blocks until shutdown() or Ctrl+C

    Port 0 binds a free port; ``address`` reports the real one once
    ``ready`` is set.
    """

    def __init__(self, handler: Handler, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._handler = handler
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._socket: Optional[socket.socket] = None
        self._bound: Optional[Tuple[str, int]] = None
        self._running = False

        self.ready = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured pair before binding."""
        if self._bound is not None:
            return self._bound
        return (self.config.host, self.config.port)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Bind, listen and serve until shutdown() is called (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._socket = self._create_socket()
        self._bound = self._socket.getsockname()[:2]
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="httphandlers-worker",
        )
        self._running = True

        bound_host, bound_port = self.address
        logger.info(
            f"Serving on http://{bound_host}:{bound_port} "
            f"({self.config.max_workers} workers)"
        )
        self.ready.set()

        try:
            self._accept_loop()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._close()

    def shutdown(self):
        """Stop accepting; run() returns after in-flight connections finish."""
        self._running = False

    def _setup_logging(self):
        """Configure root logging once; no-op if the app already did."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httphandlers").setLevel(level)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError:
            sock.close()
            raise
        # accept() wakes up every second to notice shutdown()
        sock.settimeout(1.0)
        return sock

    def _accept_loop(self):
        while self._running:
            try:
                client_socket, address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept failed: {e}")
                break

            conn = Connection(
                socket=client_socket,
                address=address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")
            future = self._executor.submit(self._process_connection, conn)
            future.add_done_callback(self._report_worker_failure)

    def _report_worker_failure(self, future):
        error = future.exception()
        if error is not None:
            logger.error(f"Connection worker failed: {error!r}", exc_info=error)

    def _close(self):
        logger.info("Shutting down server...")
        self._running = False
        if self._socket is not None:
            self._socket.close()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.ready.clear()
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (runs in a worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Rejected request: {e}")
                    self._send_error(conn, e.status_code, str(e))
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                logger.debug(f"[{conn.id}] {request_summary(request)}")
                conn.state = ConnectionState.PROCESSING

                writer = BufferedResponseWriter()
                try:
                    self._handler(writer, request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    writer = self._error_writer(HTTPStatus.INTERNAL_SERVER_ERROR)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                extra = Headers()
                if keep_alive:
                    extra.set("Connection", "keep-alive")
                    extra.set("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
                else:
                    extra.set("Connection", "close")

                response_bytes = writer.to_bytes(
                    self.config.server_name,
                    include_body=request.method != "HEAD",
                    extra_headers=extra,
                )
                if not conn.send_response(response_bytes) or not keep_alive:
                    break
                conn.set_keep_alive()

    def _error_writer(self, status: int, message: str = "") -> BufferedResponseWriter:
        writer = BufferedResponseWriter()
        writer.headers.set("Content-Type", "text/plain; charset=utf-8")
        writer.write_header(status)
        writer.write((message or status_phrase(status)).encode("utf-8"))
        return writer

    def _send_error(self, conn: Connection, status: int, message: str):
        """Error for failures before the handler runs; always closes."""
        extra = Headers({"Connection": "close"})
        writer = self._error_writer(status, message)
        conn.send_response(writer.to_bytes(self.config.server_name, extra_headers=extra))


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Accept loop with a 1s timeout so shutdown() is noticed
# 2. One worker per connection, keep-alive loop inside the worker
# 3. One BufferedResponseWriter per request at the bottom of the chain
# 4. Parse errors and handler exceptions become plain-text error responses
# =============================================================================
