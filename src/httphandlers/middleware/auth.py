"""
=============================================================================
BASIC AUTHENTICATION HANDLER
=============================================================================

Protects a handler behind HTTP Basic credentials (RFC 7617) and attaches
whatever the authentication function returns to the response writer, where
any code further down the chain can read it back with get_user().

    def check(user: str, password: str) -> tuple[Optional[Account], bool]:
        account = accounts.get(user)
        if account and account.verify(password):
            return account, True
        return None, False

    def profile(writer, request):
        account, _ = get_user(writer)
        writer.write(f"hello {account.name}".encode())

    handler = basic_auth_handler(profile, check, realm="accounts")

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   get_user(writer) resolves? ──yes──► call handler as-is            │
    │        │ no                                                          │
    │        ▼                                                             │
    │   Authorization missing/empty ──────► 401 + WWW-Authenticate        │
    │        │                                                             │
    │        ▼                                                             │
    │   "<scheme> <credentials>" ─not 2 tokens─► 400 bad header           │
    │        │                                                             │
    │        ▼                                                             │
    │   strict base64 decode ──fails───────► 400 bad encoding             │
    │        │                                                             │
    │        ▼                                                             │
    │   scheme == "Basic" and ":" in payload ─no─► 400 bad header         │
    │        │                                                             │
    │        ▼                                                             │
    │   UTF-8 decode ──fails───────────────► 400 bad encoding             │
    │        │                                                             │
    │        ▼                                                             │
    │   authenticate(user, password)                                       │
    │        │ ok                    │ rejected                            │
    │        ▼                       ▼                                     │
    │   handler(UserResponseWriter)  401 + WWW-Authenticate               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every error branch writes exactly one response and returns; the protected
handler never runs on a failed request.

=============================================================================
401 OR 400?
=============================================================================

401 Unauthorized means "tell me who you are": the client may retry with
credentials, and the WWW-Authenticate challenge tells it how.
400 Bad Request means the client sent an Authorization header that is not
well-formed Basic credentials; retrying the same header will not help.

=============================================================================
"""

from typing import Callable, Generic, Optional, Tuple, TypeVar
import base64
import logging

from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter, ResponseWriterDecorator, find_writer
from .base import Handler


logger = logging.getLogger(__name__)


T = TypeVar("T")

# authenticate(user, password) -> (identity, ok)
AuthenticateFunc = Callable[[str, str], Tuple[T, bool]]

DEFAULT_REALM = "Authorization Required"


class UserResponseWriter(ResponseWriterDecorator, Generic[T]):
    """
    Writer decorator carrying the authenticated identity for one request.

    Adds no behavior to headers or body; it exists so the identity travels
    with the writer and can be recovered by get_user() from any writer
    further up the chain.
    """

    def __init__(self, writer: ResponseWriter, user: T):
        super().__init__(writer)
        self._user = user

    @property
    def user(self) -> T:
        return self._user


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

def unauthorized(writer: ResponseWriter, realm: str) -> None:
    """Write a 401 challenge asking for Basic credentials in ``realm``."""
    writer.headers.set("WWW-Authenticate", f'Basic realm="{realm}"')
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.write_header(HTTPStatus.UNAUTHORIZED)
    writer.write(b"Unauthorized")


def bad_request(writer: ResponseWriter, message: str = "") -> None:
    """Write a 400 response with ``message`` (default "Bad Request") as body."""
    writer.headers.set("Content-Type", "text/plain; charset=utf-8")
    writer.write_header(HTTPStatus.BAD_REQUEST)
    writer.write((message or "Bad Request").encode("utf-8"))


# =============================================================================
# MIDDLEWARE
# =============================================================================

def basic_auth_handler(
    handler: Handler,
    authenticate: AuthenticateFunc,
    realm: str = "",
) -> Handler:
    """
    Wrap ``handler`` so it only runs for requests with accepted credentials.

    Args:
        handler: The handler to protect.
        authenticate: ``(user, password) -> (identity, ok)``. The identity
            can be any value; it is what get_user() returns downstream.
        realm: Protection space shown by clients. Empty means
            "Authorization Required".

    Returns:
        A handler enforcing Basic authentication.
    """
    if not realm:
        realm = DEFAULT_REALM

    def serve_basic_auth(writer: ResponseWriter, request: HTTPRequest) -> None:
        # Self-awareness: an earlier layer already authenticated this request
        if get_user(writer)[1]:
            handler(writer, request)
            return

        auth_info = request.headers.get("Authorization", "")
        if not auth_info:
            unauthorized(writer, realm)
            return

        parts = auth_info.split(" ")
        if len(parts) != 2:
            bad_request(writer, "Bad authorization header")
            return
        scheme, token = parts

        try:
            payload = base64.b64decode(token, validate=True)
        except ValueError:  # binascii.Error, non-ASCII token
            bad_request(writer, "Bad credentials encoding")
            return

        if scheme != "Basic" or b":" not in payload:
            bad_request(writer, "Bad authorization header")
            return

        try:
            creds = payload.decode("utf-8")
        except UnicodeDecodeError:
            bad_request(writer, "Bad credentials encoding")
            return

        user, password = creds.split(":", 1)
        identity, ok = authenticate(user, password)
        if not ok:
            logger.warning(f"Authentication failed for user {user!r} on {request.path}")
            unauthorized(writer, realm)
            return

        logger.debug(f"Authenticated user {user!r} on {request.path}")
        handler(UserResponseWriter(writer, identity), request)

    return serve_basic_auth


def get_user(writer: ResponseWriter) -> Tuple[Optional[T], bool]:
    """
    Return the identity attached by basic_auth_handler for this request.

    This is the value the authentication function returned. Works from any
    writer further up the chain than the UserResponseWriter, however many
    other decorators sit in between.

    Returns:
        ``(identity, True)`` if the request was authenticated,
        ``(None, False)`` otherwise.
    """
    found_writer, found = find_writer(
        writer, lambda w: isinstance(w, UserResponseWriter)
    )
    if not found:
        return None, False
    return found_writer.user, True
