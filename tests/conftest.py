"""
pytest configuration and fixtures.
"""

import base64
import socket
import threading
from typing import Callable, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httphandlers import HTTPServer, ServerConfig
from httphandlers.http import BufferedResponseWriter, HTTPRequest
from httphandlers.middleware import Handler


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Accept-Encoding: gzip, deflate\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body) + body


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for HTTPRequest objects with list-of-pairs headers."""

    def _make(method: str = "GET", path: str = "/", headers=None, **kwargs) -> HTTPRequest:
        return HTTPRequest(method=method, path=path, headers=headers or [], **kwargs)

    return _make


@pytest.fixture
def writer() -> BufferedResponseWriter:
    """Fresh bottom-of-chain writer."""
    return BufferedResponseWriter()


@pytest.fixture
def basic_credentials() -> Callable[[str, str], str]:
    """Builds an Authorization header value for Basic credentials."""

    def _encode(user: str, password: str) -> str:
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    return _encode


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.ready.wait(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def start_server() -> Generator[Callable[[Handler], TestServer], None, None]:
    """Start an HTTPServer on a free port around a given handler."""
    started = []

    def _start(handler: Handler, **config) -> TestServer:
        config.setdefault("keep_alive_timeout", 1.0)
        server = HTTPServer(handler, ServerConfig(
            host="127.0.0.1",
            port=0,
            max_workers=4,
            timeout=5.0,
            log_level="WARNING",
            **config,
        ))
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield _start

    for test_srv in started:
        test_srv.stop()
