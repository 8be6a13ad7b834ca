"""
Unit tests for the Basic authentication handler.
"""

import logging

import pytest

from httphandlers.http import ResponseWriterDecorator
from httphandlers.middleware import (
    DEFAULT_REALM,
    UserResponseWriter,
    bad_request,
    basic_auth_handler,
    get_user,
    gzip_handler,
    unauthorized,
)


USERS = {"alice": ("alice-id", "secret")}


def authenticate(user, password):
    entry = USERS.get(user)
    if entry is None or entry[1] != password:
        return None, False
    return entry[0], True


class Spy:
    """Protected handler that records the identity it saw."""

    def __init__(self):
        self.calls = []

    def __call__(self, writer, request):
        self.calls.append(get_user(writer))
        writer.write(b"ok")


class CountingWriter(ResponseWriterDecorator):
    """Counts write_header calls reaching the bottom writer."""

    def __init__(self, writer):
        super().__init__(writer)
        self.header_writes = 0

    def write_header(self, status):
        self.header_writes += 1
        super().write_header(status)


class TestBasicAuthHandler:
    """Tests for basic_auth_handler."""

    def test_valid_credentials(self, writer, make_request, basic_credentials):
        spy = Spy()
        request = make_request(headers=[("Authorization", basic_credentials("alice", "secret"))])

        basic_auth_handler(spy, authenticate, "test")(writer, request)

        assert spy.calls == [("alice-id", True)]
        assert writer.status == 200
        assert writer.body == b"ok"

    def test_missing_header_challenges(self, writer, make_request):
        spy = Spy()

        basic_auth_handler(spy, authenticate, "test")(writer, make_request())

        assert spy.calls == []
        assert writer.status == 401
        assert writer.sent_headers.get("WWW-Authenticate") == 'Basic realm="test"'

    def test_empty_header_challenges(self, writer, make_request):
        spy = Spy()
        request = make_request(headers=[("Authorization", "")])

        basic_auth_handler(spy, authenticate, "test")(writer, request)

        assert spy.calls == []
        assert writer.status == 401

    def test_empty_realm_uses_default(self, writer, make_request):
        basic_auth_handler(Spy(), authenticate)(writer, make_request())

        assert writer.sent_headers.get("WWW-Authenticate") == f'Basic realm="{DEFAULT_REALM}"'
        assert DEFAULT_REALM == "Authorization Required"

    def test_wrong_password(self, writer, make_request, basic_credentials, caplog):
        spy = Spy()
        request = make_request(headers=[("Authorization", basic_credentials("alice", "nope"))])

        with caplog.at_level(logging.WARNING, logger="httphandlers.middleware.auth"):
            basic_auth_handler(spy, authenticate, "test")(writer, request)

        assert spy.calls == []
        assert writer.status == 401
        assert "WWW-Authenticate" in writer.sent_headers
        assert "alice" in caplog.text
        assert "nope" not in caplog.text

    def test_bad_base64(self, writer, make_request):
        spy = Spy()
        request = make_request(headers=[("Authorization", "Basic not-base64!!")])

        basic_auth_handler(spy, authenticate, "test")(writer, request)

        assert spy.calls == []
        assert writer.status == 400
        assert writer.body == b"Bad credentials encoding"

    def test_non_utf8_payload(self, writer, make_request):
        request = make_request(headers=[("Authorization", "Basic /zp4")])  # b"\xff:x"

        basic_auth_handler(Spy(), authenticate, "test")(writer, request)

        assert writer.status == 400
        assert writer.body == b"Bad credentials encoding"

    def test_wrong_scheme(self, writer, make_request):
        spy = Spy()
        request = make_request(headers=[("Authorization", "Digest abcd")])

        basic_auth_handler(spy, authenticate, "test")(writer, request)

        assert spy.calls == []
        assert writer.status == 400
        assert writer.body == b"Bad authorization header"

    def test_scheme_is_case_sensitive(self, writer, make_request, basic_credentials):
        value = basic_credentials("alice", "secret").replace("Basic", "basic")
        request = make_request(headers=[("Authorization", value)])

        basic_auth_handler(Spy(), authenticate, "test")(writer, request)

        assert writer.status == 400

    @pytest.mark.parametrize("value", [
        "Basic",
        "Basic a b",
        "Basic  YWxpY2U6c2VjcmV0",
    ])
    def test_wrong_token_count(self, writer, make_request, value):
        request = make_request(headers=[("Authorization", value)])

        basic_auth_handler(Spy(), authenticate, "test")(writer, request)

        assert writer.status == 400
        assert writer.body == b"Bad authorization header"

    def test_payload_without_colon(self, writer, make_request):
        request = make_request(headers=[("Authorization", "Basic YWxpY2U=")])  # "alice"

        basic_auth_handler(Spy(), authenticate, "test")(writer, request)

        assert writer.status == 400
        assert writer.body == b"Bad authorization header"

    def test_password_may_contain_colon(self, writer, make_request, basic_credentials):
        seen = []

        def capture(user, password):
            seen.append((user, password))
            return user, True

        request = make_request(headers=[("Authorization", basic_credentials("bob", "a:b:c"))])
        basic_auth_handler(Spy(), capture)(writer, request)

        assert seen == [("bob", "a:b:c")]

    @pytest.mark.parametrize("value", [
        None,
        "Basic not-base64!!",
        "Digest abcd",
        "Basic YWxpY2U6bm9wZQ==",  # alice:nope
    ])
    def test_each_failure_writes_one_response(self, writer, make_request, value):
        counting = CountingWriter(writer)
        headers = [("Authorization", value)] if value else []

        basic_auth_handler(Spy(), authenticate, "test")(counting, make_request(headers=headers))

        assert counting.header_writes == 1

    def test_nested_auth_skips_second_check(self, writer, make_request, basic_credentials):
        """The inner layer sees the identity and does not re-check."""
        spy = Spy()
        inner_calls = []

        def inner_auth(user, password):
            inner_calls.append(user)
            return "other", True

        request = make_request(headers=[("Authorization", basic_credentials("alice", "secret"))])
        handler = basic_auth_handler(basic_auth_handler(spy, inner_auth, "inner"), authenticate, "outer")
        handler(writer, request)

        assert inner_calls == []
        assert spy.calls == [("alice-id", True)]

    def test_identity_visible_through_gzip(self, writer, make_request, basic_credentials):
        spy = Spy()
        request = make_request(headers=[
            ("Authorization", basic_credentials("alice", "secret")),
            ("Accept-Encoding", "gzip"),
        ])

        basic_auth_handler(gzip_handler(spy), authenticate)(writer, request)

        assert spy.calls == [("alice-id", True)]
        assert writer.sent_headers.get("Content-Encoding") == "gzip"


class TestGetUser:
    """Tests for get_user."""

    def test_no_identity(self, writer):
        assert get_user(writer) == (None, False)

    def test_identity_on_head(self, writer):
        assert get_user(UserResponseWriter(writer, {"id": 7})) == ({"id": 7}, True)

    def test_identity_below_other_decorators(self, writer):
        chain = ResponseWriterDecorator(ResponseWriterDecorator(UserResponseWriter(writer, "u")))

        assert get_user(chain) == ("u", True)

    def test_falsy_identity_still_found(self, writer):
        assert get_user(UserResponseWriter(writer, None)) == (None, True)


class TestResponseHelpers:
    """Tests for unauthorized and bad_request."""

    def test_unauthorized(self, writer):
        unauthorized(writer, "files")

        assert writer.status == 401
        assert writer.sent_headers.get("WWW-Authenticate") == 'Basic realm="files"'
        assert writer.body == b"Unauthorized"

    def test_bad_request_default_message(self, writer):
        bad_request(writer)

        assert writer.status == 400
        assert writer.body == b"Bad Request"

    def test_bad_request_message(self, writer):
        bad_request(writer, "nope")

        assert writer.body == b"nope"
        assert writer.sent_headers.get("Content-Type") == "text/plain; charset=utf-8"
