"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware wraps a handler and returns a handler. The ones here work by
decorating the response writer:

gzip_handler:
    Hands the handler a GzipResponseWriter when the client accepts gzip.
    Manages Vary / Content-Encoding / Content-Length.

basic_auth_handler:
    Validates Basic credentials and hands the handler a UserResponseWriter
    carrying the authenticated identity; get_user() reads it back.

LoggingMiddleware:
    Hands the handler a StatusRecorder and logs status, bytes and timing.

MiddlewarePipeline:
    Composes middleware, first added = outermost.

Both gzip_handler and basic_auth_handler check whether their decorator is
already in the chain (via find_writer) and step aside if so, so composing
either one twice is harmless.

=============================================================================
"""

from .base import Handler, Middleware, MiddlewarePipeline
from .auth import (
    DEFAULT_REALM,
    UserResponseWriter,
    bad_request,
    basic_auth_handler,
    get_user,
    unauthorized,
)
from .compression import GzipResponseWriter, gzip_handler
from .logging import LoggingMiddleware, RequestLog, StatusRecorder

__all__ = [
    # Types and composition
    "Handler",
    "Middleware",
    "MiddlewarePipeline",

    # Compression
    "GzipResponseWriter",
    "gzip_handler",

    # Basic authentication
    "DEFAULT_REALM",
    "UserResponseWriter",
    "bad_request",
    "basic_auth_handler",
    "get_user",
    "unauthorized",

    # Access logging
    "LoggingMiddleware",
    "RequestLog",
    "StatusRecorder",
]
