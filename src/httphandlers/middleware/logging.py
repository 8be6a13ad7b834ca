"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Logs one line per request: method, path, status, bytes sent and duration.

With writer-based handlers there is no response object to inspect after the
handler returns, so the middleware hands the handler a StatusRecorder: a
writer decorator that notes the committed status and counts body bytes on
their way out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   LoggingMiddleware                                                  │
    │      │  writer ──► StatusRecorder(writer)                            │
    │      ▼                                                               │
    │   gzip_handler          (writes compressed bytes into the recorder) │
    │      ▼                                                               │
    │   handler                                                            │
    │                                                                      │
    │   Placed outermost, the recorder counts bytes as they leave for     │
    │   the client, i.e. after compression.                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass

from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter, ResponseWriterDecorator
from .base import Handler


# Namespaced so deployments can route access logs separately:
#   logging.getLogger("httphandlers.access").addHandler(file_handler)
logger = logging.getLogger("httphandlers.access")


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    request_id:     Unique ID for correlation (also sent as X-Request-ID)
    method:         HTTP method
    path:           Request path
    client_ip:      Client's IP address
    user_agent:     Client identifier
    status_code:    Committed HTTP status
    content_length: Body bytes sent (after any compression)
    duration_ms:    Processing time
    timestamp:      When the request was processed
    """

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache combined-style line."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class StatusRecorder(ResponseWriterDecorator):
    """Writer decorator that remembers the status and counts body bytes."""

    def __init__(self, writer: ResponseWriter):
        super().__init__(writer)
        self.status: Optional[int] = None
        self.bytes_written = 0

    def write_header(self, status: int) -> None:
        if self.status is None:
            self.status = int(status)
        super().write_header(status)

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.status = int(HTTPStatus.OK)
        n = super().write(data)
        self.bytes_written += n
        return n


class LoggingMiddleware:
    """
    Request logging middleware.

    Usage:
        # Text format (Apache combined)
        pipeline.add(LoggingMiddleware(log_format="text"))

        # JSON format (for log aggregators)
        pipeline.add(LoggingMiddleware(log_format="json"))

        # Skip noisy endpoints
        pipeline.add(LoggingMiddleware(skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add an X-Request-ID header to every response.
            log_level: Level used for access lines.
            skip_paths: Paths that are served but not logged.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, handler: Handler) -> Handler:
        def serve_logged(writer: ResponseWriter, request: HTTPRequest) -> None:
            request_id = str(uuid.uuid4())[:8]
            if self.include_request_id:
                # Before the handler runs: headers freeze at commit
                writer.headers.set("X-Request-ID", request_id)

            recorder = StatusRecorder(writer)
            start_time = time.time()
            try:
                handler(recorder, request)
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                logger.error(
                    f"Request failed: {request.method} {request.path} "
                    f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
                )
                raise
            duration_ms = (time.time() - start_time) * 1000

            if request.path in self.skip_paths:
                return

            entry = RequestLog(
                request_id=request_id,
                method=request.method,
                path=request.path,
                client_ip=request.client_address[0],
                user_agent=request.user_agent or "-",
                status_code=recorder.status or int(HTTPStatus.OK),
                content_length=recorder.bytes_written,
                duration_ms=duration_ms,
                timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            )

            if self.log_format == "json":
                logger.log(self.log_level, json.dumps(entry.to_dict()))
            else:
                logger.log(self.log_level, entry.to_text())

        return serve_logged
