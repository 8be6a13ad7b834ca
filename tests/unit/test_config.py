"""
Unit tests for ServerConfig and the CLI wiring.
"""

import argparse
import gzip

import pytest

from httphandlers.config import ServerConfig
from httphandlers.http import BufferedResponseWriter
from httphandlers.__main__ import (
    build_handler,
    build_parser,
    make_authenticator,
    parse_credentials,
)


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_are_valid(self):
        config = ServerConfig()
        config.validate()

        assert config.auth_realm == "Authorization Required"
        assert config.gzip_level == 6

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_WORKERS", "2")
        monkeypatch.setenv("HTTP_AUTH_REALM", "staging")
        monkeypatch.setenv("HTTP_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.port == 3000
        assert config.max_workers == 2
        assert config.auth_realm == "staging"
        assert config.log_format == "json"

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"max_workers": 0},
        {"buffer_size": 10},
        {"timeout": 0},
        {"gzip_level": 11},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()


class TestCLI:
    """Tests for the CLI helpers."""

    def test_parse_credentials(self):
        assert parse_credentials(["alice:s1", "bob:a:b"]) == {"alice": "s1", "bob": "a:b"}
        assert parse_credentials(None) == {}

    @pytest.mark.parametrize("value", ["alice", ":secret"])
    def test_parse_credentials_rejects(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_credentials([value])

    def test_authenticator(self):
        authenticate = make_authenticator({"alice": "secret"})

        assert authenticate("alice", "secret") == ("alice", True)
        assert authenticate("alice", "wrong") == (None, False)
        assert authenticate("mallory", "secret") == (None, False)

    def test_parser_flags(self):
        args = build_parser(ServerConfig()).parse_args(
            ["--port", "0", "--user", "a:b", "--user", "c:d", "--no-gzip", "--realm", "r"]
        )

        assert args.port == 0
        assert args.user == ["a:b", "c:d"]
        assert args.no_gzip is True
        assert args.realm == "r"

    def test_demo_handler_without_auth(self, make_request):
        writer = BufferedResponseWriter()
        handler = build_handler(ServerConfig(), {})

        handler(writer, make_request(path="/x", headers=[("Accept-Encoding", "gzip")]))

        assert gzip.decompress(writer.body) == b"Hello, world! You asked for /x\n"

    def test_demo_handler_with_auth(self, make_request, basic_credentials):
        handler = build_handler(ServerConfig(), {"alice": "secret"}, use_gzip=False)

        denied = BufferedResponseWriter()
        handler(denied, make_request())
        allowed = BufferedResponseWriter()
        handler(allowed, make_request(headers=[("Authorization", basic_credentials("alice", "secret"))]))

        assert denied.status == 401
        assert allowed.body == b"Hello, alice! You asked for /\n"
