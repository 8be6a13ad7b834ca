"""
Unit tests for middleware composition and access logging.
"""

import json
import logging
from functools import partial

import pytest

from httphandlers.middleware import (
    LoggingMiddleware,
    MiddlewarePipeline,
    StatusRecorder,
    basic_auth_handler,
    get_user,
    gzip_handler,
)
from httphandlers.middleware.base import middleware_name


def tracing(name, trace):
    """Middleware that records entry and exit around the next handler."""

    def middleware(handler):
        def serve(writer, request):
            trace.append(f"{name}:in")
            handler(writer, request)
            trace.append(f"{name}:out")
        return serve

    middleware.__name__ = name
    return middleware


def ok(writer, request):
    writer.write(b"ok")


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline ordering."""

    def test_first_added_is_outermost(self, writer, make_request):
        trace = []
        pipeline = MiddlewarePipeline()
        pipeline.add(tracing("a", trace)).add(tracing("b", trace))

        def final(w, r):
            trace.append("handler")

        pipeline.wrap(final)(writer, make_request())

        assert trace == ["a:in", "b:in", "handler", "b:out", "a:out"]

    def test_use_adds_in_order(self):
        trace = []
        a, b, c = (tracing(n, trace) for n in "abc")
        pipeline = MiddlewarePipeline().use(a, b, c)

        assert list(pipeline) == [a, b, c]
        assert len(pipeline) == 3

    def test_empty_pipeline_returns_handler(self):
        assert MiddlewarePipeline().wrap(ok) is ok

    def test_auth_then_gzip(self, writer, make_request, basic_credentials):
        import gzip

        def greet(w, r):
            user, _ = get_user(w)
            w.write(f"hi {user}".encode())

        pipeline = MiddlewarePipeline()
        pipeline.add(partial(basic_auth_handler, authenticate=lambda u, p: (u, p == "pw")))
        pipeline.add(gzip_handler)
        request = make_request(headers=[
            ("Authorization", basic_credentials("carol", "pw")),
            ("Accept-Encoding", "gzip"),
        ])

        pipeline.wrap(greet)(writer, request)

        assert gzip.decompress(writer.body) == b"hi carol"

    def test_middleware_name(self):
        assert middleware_name(gzip_handler) == "gzip_handler"
        assert middleware_name(partial(basic_auth_handler, realm="x")) == "basic_auth_handler"
        assert middleware_name(LoggingMiddleware()) == "LoggingMiddleware"


class TestStatusRecorder:
    """Tests for StatusRecorder."""

    def test_records_explicit_status(self, writer):
        recorder = StatusRecorder(writer)
        recorder.write_header(404)
        recorder.write(b"abc")

        assert recorder.status == 404
        assert recorder.bytes_written == 3
        assert writer.status == 404

    def test_implicit_200(self, writer):
        recorder = StatusRecorder(writer)
        recorder.write(b"abcdef")

        assert recorder.status == 200
        assert recorder.bytes_written == 6


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_logs_text_line(self, writer, make_request, caplog):
        handler = LoggingMiddleware()(ok)

        with caplog.at_level(logging.INFO, logger="httphandlers.access"):
            handler(writer, make_request(path="/hello"))

        assert '"GET /hello" 200 2' in caplog.text

    def test_logs_json(self, writer, make_request, caplog):
        handler = LoggingMiddleware(log_format="json")(ok)

        with caplog.at_level(logging.INFO, logger="httphandlers.access"):
            handler(writer, make_request(path="/j", headers=[("User-Agent", "pytest")]))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["path"] == "/j"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 2
        assert entry["user_agent"] == "pytest"

    def test_counts_compressed_bytes(self, writer, make_request, caplog):
        handler = LoggingMiddleware(log_format="json")(gzip_handler(ok))

        with caplog.at_level(logging.INFO, logger="httphandlers.access"):
            handler(writer, make_request(headers=[("Accept-Encoding", "gzip")]))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["content_length"] == len(writer.body)

    def test_sets_request_id(self, writer, make_request):
        LoggingMiddleware()(ok)(writer, make_request())

        assert len(writer.sent_headers.get("X-Request-ID", "")) == 8

    def test_request_id_optional(self, writer, make_request):
        LoggingMiddleware(include_request_id=False)(ok)(writer, make_request())

        assert "X-Request-ID" not in writer.sent_headers

    def test_skip_paths(self, writer, make_request, caplog):
        handler = LoggingMiddleware(skip_paths=["/health"])(ok)

        with caplog.at_level(logging.INFO, logger="httphandlers.access"):
            handler(writer, make_request(path="/health"))

        assert [r for r in caplog.records if r.name == "httphandlers.access"] == []
        assert writer.body == b"ok"

    def test_logs_and_reraises_errors(self, writer, make_request, caplog):
        def broken(w, r):
            raise KeyError("missing")

        handler = LoggingMiddleware()(broken)

        with caplog.at_level(logging.INFO, logger="httphandlers.access"):
            with pytest.raises(KeyError):
                handler(writer, make_request(path="/boom"))

        assert "Request failed: GET /boom" in caplog.text

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")
