"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

The objects every handler and middleware in this package works with:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ headers.py       Headers: ordered, case-insensitive multimap        │
    │ request.py       HTTPRequest + RequestParser (bytes → request)      │
    │ writer.py        ResponseWriter, WrappedWriter, decorators,         │
    │                  find_writer(), BufferedResponseWriter              │
    │ status_codes.py  HTTPStatus with reason phrases                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .headers import Headers
from .request import HTTPRequest, HTTPParseError, RequestParser, parse_request
from .status_codes import HTTPStatus, status_phrase
from .writer import (
    MAX_UNWRAP_DEPTH,
    BufferedResponseWriter,
    ResponseWriter,
    ResponseWriterDecorator,
    UnwrapDepthError,
    WrappedWriter,
    find_writer,
    format_http_date,
)

__all__ = [
    "Headers",
    "HTTPRequest",
    "HTTPParseError",
    "RequestParser",
    "parse_request",
    "HTTPStatus",
    "status_phrase",
    "MAX_UNWRAP_DEPTH",
    "BufferedResponseWriter",
    "ResponseWriter",
    "ResponseWriterDecorator",
    "UnwrapDepthError",
    "WrappedWriter",
    "find_writer",
    "format_http_date",
]
