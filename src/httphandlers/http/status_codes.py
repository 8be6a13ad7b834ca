"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

Status codes used by the handlers, the server and the writers, with their
reason phrases.

    ┌────────────────────────────────────────────────────────────────────┐
    │                 STATUS CODES IN THIS PACKAGE                       │
    ├────────┬───────────────────────────────────────────────────────────┤
    │  2xx   │ 200 OK            - Implicit commit on first body write   │
    │        │ 204 No Content    - No body; gzip opens no stream         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 304 Not Modified  - No body; gzip opens no stream         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request   - Malformed Authorization header        │
    │        │ 401 Unauthorized  - Missing or rejected credentials       │
    │        │ 405 / 408 / 413   - Request parsing and transport         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error - Handler raised                       │
    │        │ 505 Version        - Unsupported HTTP version             │
    └────────┴───────────────────────────────────────────────────────────┘

Handlers may commit any integer status; codes outside this enum still get
a status line, with the phrase "Unknown".

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.UNAUTHORIZED == 401
        True
        >>> HTTPStatus.UNAUTHORIZED.phrase
        'Unauthorized'
    """

    # 2xx Success
    OK = 200
    NO_CONTENT = 204

    # 3xx Redirection
    NOT_MODIFIED = 304

    # 4xx Client Errors
    BAD_REQUEST = 400                   # Malformed request syntax
    UNAUTHORIZED = 401                  # Authentication required (not logged in)
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408               # Client took too long to send request
    PAYLOAD_TOO_LARGE = 413

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500         # Unexpected server error (catch-all)
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 401 Unauthorized
                     ─── ────────────
                      │        │
                      │        └── Reason phrase
                      └─────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx (client error) status code."""
        return 400 <= self < 500


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def status_phrase(code: int) -> str:
    """Reason phrase for any integer status, "Unknown" if not listed."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"
