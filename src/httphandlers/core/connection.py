"""
=============================================================================
CLIENT CONNECTION
=============================================================================

An accepted socket plus the framing needed to cut the byte stream into
individual requests. Bytes past the end of one request (a pipelined
client) stay in the buffer for the next read.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      FRAMING ONE REQUEST                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   buffer: GET / HTTP/1.1\r\n ... \r\n\r\n <body> GET /next ...      │
    │           └──────── head ─────────┘└─ N ─┘└─── left for later ──    │
    │                                                                      │
    │   1. fill until the blank line that ends the head                   │
    │   2. N = Content-Length from the head (0 if absent or unusable)     │
    │   3. fill until N body bytes are buffered                           │
    │                                                                      │
    │   The first request waits up to `timeout`; later requests on a      │
    │   kept-alive connection only wait `keep_alive_timeout`.             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Parsing is not done here; RequestParser validates what comes out.

=============================================================================
"""

import logging
import socket
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)


HEAD_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection, served by one worker thread.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short identifier used as a log prefix.
        requests_handled: Requests framed so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    _pending: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def read_request(self) -> Optional[bytes]:
        """
        Return the bytes of the next complete request.

        Returns:
            The request, or None when the client is gone: it closed the
            connection, or a kept-alive connection stayed idle too long.

        Raises:
            TimeoutError: The first request did not arrive within `timeout`.
            HTTPParseError: The request is larger than `max_request_size` (413).
        """
        self.state = ConnectionState.READING
        idle_wait = self.keep_alive_timeout if self.requests_handled else self.timeout
        self.socket.settimeout(idle_wait)

        try:
            if not self._fill_until(lambda: HEAD_TERMINATOR in self._pending):
                return None

            body_start = self._pending.find(HEAD_TERMINATOR) + len(HEAD_TERMINATOR)
            length = content_length_of(bytes(self._pending[:body_start]))
            # A short body is passed on as-is; the parser rejects it
            self._fill_until(lambda: len(self._pending) - body_start >= length)

        except socket.timeout:
            if self.requests_handled:
                logger.debug(f"[{self.id}] Idle keep-alive connection timed out")
                return None
            raise TimeoutError("Timed out waiting for request")
        finally:
            self.socket.settimeout(self.timeout)

        end = min(body_start + length, len(self._pending))
        request = bytes(self._pending[:end])
        del self._pending[:end]

        self.requests_handled += 1
        return request

    def _fill_until(self, done) -> bool:
        """recv() into the buffer until ``done()``; False if the peer closed first."""
        while not done():
            try:
                chunk = self.socket.recv(self.buffer_size)
            except (ConnectionResetError, BrokenPipeError):
                chunk = b""
            if not chunk:
                return False
            self._pending += chunk
            if len(self._pending) > self.max_request_size:
                raise HTTPParseError(
                    f"Request exceeds {self.max_request_size} bytes",
                    status_code=413,
                )
        return True

    def send_response(self, data: bytes) -> bool:
        """sendall() the response; False if the client went away."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        return True

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """Half-close, give the peer a moment to read, then release the socket."""
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # peer already gone, or drain timed out
        finally:
            self.socket.close()
            self.state = ConnectionState.CLOSED

        logger.debug(f"[{self.id}] Closed after {self.requests_handled} request(s)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def content_length_of(head: bytes) -> int:
    """Content-Length from a raw request head, 0 if absent or not a number."""
    for line in head.split(b"\r\n")[1:]:
        name, sep, value = line.partition(b":")
        if sep and name.strip().lower() == b"content-length":
            try:
                return max(0, int(value.strip()))
            except ValueError:
                return 0
    return 0
