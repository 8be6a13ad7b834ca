"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns raw request bytes read from a connection into an HTTPRequest.

    Raw bytes                  HTTPRequest                 Handler
    from socket    ──parse──►   dataclass    ──call──►     (writer, request)
       │                            │                          │
    b"GET /..."              HTTPRequest(                  gzip_handler(...)
                               method="GET",                 basic_auth_handler(...)
                               path="/",                       your_handler(w, r)
                               headers=Headers(...),
                               ...)

=============================================================================
REPEATED HEADER FIELDS
=============================================================================

A client may send the same field more than once:

    Accept-Encoding: deflate
    Accept-Encoding: gzip

The headers are kept as separate values in a Headers multimap instead of
being folded into one comma-joined string. Content negotiation looks at each
field value on its own, and "field absent" must stay distinguishable from
"field present but empty".

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse, unquote
import re

from .headers import Headers


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client:

        400 Bad Request     - Malformed request syntax
        405 Method Not Allowed - Unknown/unsupported method
        413 Payload Too Large - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method:         The HTTP method (GET, HEAD, POST, ...)
        path:           Request path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Headers multimap (case-insensitive names)
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw request body bytes
        client_address: (ip, port) of the client
        raw:            The original unparsed request bytes
    """

    method: str
    path: str = "/"
    version: str = "HTTP/1.1"

    headers: Headers = field(default_factory=Headers)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    def __post_init__(self):
        # Accept plain dicts / pair lists for convenience in handlers and tests
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("text/html; charset=utf-8" → "text/html")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", "0"))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1 keeps alive unless "Connection: close" was sent.
        HTTP/1.0 closes unless "Connection: keep-alive" was sent.
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """First value of a header (case-insensitive), or ``default``."""
        return self.headers.get(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or ``default``."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Turns one framed request (as read by Connection) into an HTTPRequest.

        request line   → 400 malformed, 405 unknown method, 505 version
        header fields  → Headers, repeated fields kept apart
        body           → exactly Content-Length bytes, 400 if short
        whole request  → 413 above max_request_size
    """

    KNOWN_METHODS = frozenset({
        "GET", "HEAD", "POST", "PUT", "PATCH", "DELETE",
        "OPTIONS", "TRACE", "CONNECT",
    })
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    REQUEST_LINE = re.compile(r"([A-Z]+) (\S+) (HTTP/\d\.\d)")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Args:
            data: One complete request, head and body.
            client_address: Peer (ip, port), kept on the request for logs.

        Raises:
            HTTPParseError: With the status code the client should get.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request of {len(data)} bytes exceeds {self.max_request_size}",
                status_code=413,
            )

        head, separator, rest = data.partition(b"\r\n\r\n")
        if not separator:
            raise HTTPParseError("Request head is not terminated by a blank line")

        # latin-1 maps every byte, so odd header bytes never raise here
        request_line, *field_lines = head.decode("latin-1").split("\r\n")
        method, target, version = self._split_request_line(request_line)
        path, query_params = self._split_target(target)
        headers = self._read_fields(field_lines)

        length = self._body_length(headers)
        if len(rest) < length:
            raise HTTPParseError(f"Body too short: Content-Length {length}, got {len(rest)}")

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=rest[:length],
            client_address=client_address,
            raw=data,
        )

    def _split_request_line(self, line: str) -> tuple[str, str, str]:
        match = self.REQUEST_LINE.fullmatch(line)
        if match is None:
            raise HTTPParseError(f"Malformed request line: {line!r}")

        method, target, version = match.groups()
        if method not in self.KNOWN_METHODS:
            raise HTTPParseError(f"Unknown method: {method}", status_code=405)
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"HTTP version not supported: {version}", status_code=505)
        return method, target, version

    @staticmethod
    def _split_target(target: str) -> tuple[str, Dict[str, list[str]]]:
        """Split "/a%20b?x=1" into ("/a b", {"x": ["1"]}). Rejects ".." in the path."""
        url = urlparse(target)
        path = unquote(url.path) or "/"
        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..")
        return path, parse_qs(url.query, keep_blank_values=True)

    @staticmethod
    def _read_fields(lines: list[str]) -> Headers:
        """
        "Name: value" lines → Headers.

        A line starting with whitespace continues the previous field
        (obsolete folding). Lines without a colon are dropped.
        """
        fields: list[tuple[str, str]] = []
        for line in lines:
            if line[:1] in (" ", "\t"):
                if fields:
                    name, value = fields[-1]
                    fields[-1] = (name, f"{value} {line.strip()}")
                continue
            name, colon, value = line.partition(":")
            if colon and name.strip():
                fields.append((name.strip(), value.strip()))
        return Headers(fields)

    @staticmethod
    def _body_length(headers: Headers) -> int:
        raw = headers.get("Content-Length", "0")
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)


def request_summary(request: HTTPRequest) -> Dict[str, Any]:
    """Loggable view of a request. Authorization values are masked."""
    headers = {
        name: ("***" if name.lower() == "authorization" else value)
        for name, value in request.headers.items()
    }
    return {
        "method": request.method,
        "path": request.path,
        "version": request.version,
        "headers": headers,
    }
