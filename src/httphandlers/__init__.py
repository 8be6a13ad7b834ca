"""
=============================================================================
HTTPHANDLERS - Composable HTTP Handlers Built on Writer Decorators
=============================================================================

Handlers write their response through a ResponseWriter. Middleware adds
behavior by handing the next handler a decorated writer, and any layer can
walk the decorator chain to discover what the layers around it did.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   gzip_handler         compress the body when the client accepts    │
    │                        gzip; manage Vary / Content-Encoding         │
    │                                                                      │
    │   basic_auth_handler   check Basic credentials, carry the identity  │
    │                        on the writer; get_user() reads it back      │
    │                                                                      │
    │   find_writer          search the decorator chain, outermost first  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httphandlers/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI demo (python -m httphandlers)
    ├── server.py            # Threaded host server
    ├── config.py            # ServerConfig dataclass
    ├── core/
    │   └── connection.py    # Socket framing and keep-alive
    ├── http/
    │   ├── headers.py       # Case-insensitive multimap
    │   ├── request.py       # Request parsing
    │   ├── status_codes.py  # HTTP status enum
    │   └── writer.py        # ResponseWriter, decorators, find_writer
    └── middleware/
        ├── base.py          # Handler / Middleware types, pipeline
        ├── compression.py   # gzip_handler
        ├── auth.py          # basic_auth_handler, get_user
        └── logging.py       # Access logging

=============================================================================
QUICK START
=============================================================================

    from httphandlers import HTTPServer, ServerConfig
    from httphandlers.middleware import basic_auth_handler, get_user, gzip_handler

    def hello(writer, request):
        user, _ = get_user(writer)
        writer.write(f"hello {user}".encode())

    def check(user, password):
        return user, password == "secret"

    handler = basic_auth_handler(gzip_handler(hello), check, realm="demo")
    HTTPServer(handler, ServerConfig(port=8080)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http import (
    BufferedResponseWriter,
    ResponseWriter,
    ResponseWriterDecorator,
    WrappedWriter,
    find_writer,
)
from .middleware import (
    basic_auth_handler,
    bad_request,
    get_user,
    gzip_handler,
    unauthorized,
)
from .server import HTTPServer

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "BufferedResponseWriter",
    "ResponseWriter",
    "ResponseWriterDecorator",
    "WrappedWriter",
    "find_writer",
    "basic_auth_handler",
    "bad_request",
    "get_user",
    "gzip_handler",
    "unauthorized",
    "__version__",
]
