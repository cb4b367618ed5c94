"""One-time authorization: turn a browser login into a stored token record.

This runs once per credential bootstrap and sits outside the token
lifecycle. The lifecycle only ever sees the record saved here.
"""

import secrets
import urllib.parse
from collections.abc import Callable
from datetime import datetime
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx
import structlog

from whoopdash.adapters.base import ReauthorizationRequired, truncate_body
from whoopdash.auth.tokens import TokenRecord, utcnow

logger = structlog.get_logger()

DEFAULT_PASSPORT_EXPIRES_IN = 86400

_SUCCESS_PAGE = b"""<html><body>
<h1>Authorization Successful!</h1>
<p>You can close this window and return to the terminal.</p>
</body></html>"""

_FAILURE_PAGE = b"""<html><body>
<h1>Authorization Failed</h1>
<p>No authorization code received. Please try again.</p>
</body></html>"""


class AuthorizationError(Exception):
    """Raised when the browser flow yields no usable authorization code."""

    pass


def new_state() -> str:
    return secrets.token_urlsafe(16)


def build_authorize_url(auth_url: str, client_id: str, redirect_uri: str, scopes: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": scopes,
        "state": state,
    }
    return f"{auth_url}?{urllib.parse.urlencode(params)}"


class CallbackResult:
    """What the local listener captured from the OAuth redirect."""

    def __init__(self) -> None:
        self.code: str | None = None
        self.state: str | None = None
        self.error: str | None = None


class _CallbackServer(HTTPServer):
    timed_out = False

    def handle_timeout(self) -> None:
        self.timed_out = True


def _make_handler(result: CallbackResult, callback_path: str) -> type[BaseHTTPRequestHandler]:
    class _CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            parsed = urllib.parse.urlparse(self.path)
            if parsed.path != callback_path:
                self.send_response(404)
                self.end_headers()
                self.wfile.write(b"Not found")
                return

            params = urllib.parse.parse_qs(parsed.query)
            result.state = params.get("state", [None])[0]
            if "code" in params:
                result.code = params["code"][0]
                self.send_response(200)
                self.send_header("Content-Type", "text/html")
                self.end_headers()
                self.wfile.write(_SUCCESS_PAGE)
            else:
                result.error = params.get("error", ["missing code"])[0]
                self.send_response(400)
                self.send_header("Content-Type", "text/html")
                self.end_headers()
                self.wfile.write(_FAILURE_PAGE)

        def log_message(self, format: str, *args: object) -> None:
            # The query string carries the authorization code
            pass

    return _CallbackHandler


def wait_for_callback(redirect_uri: str, expected_state: str, timeout: float = 180.0) -> str:
    """Listen on the redirect URI's host/port until the browser delivers a code.

    Returns:
        The authorization code.

    Raises:
        AuthorizationError: Timed out, the provider returned an error, or
            the ``state`` did not match.
    """
    parsed = urllib.parse.urlparse(redirect_uri)
    host = parsed.hostname or "localhost"
    port = parsed.port or 80
    callback_path = parsed.path or "/"

    result = CallbackResult()
    server = _CallbackServer((host, port), _make_handler(result, callback_path))
    server.timeout = timeout
    logger.info("Waiting for authorization callback", url=redirect_uri)
    try:
        # Browsers may request other paths (favicon) before the callback
        while result.code is None and result.error is None and not server.timed_out:
            server.handle_request()
    finally:
        server.server_close()

    if result.error is not None:
        raise AuthorizationError(f"Authorization failed: {result.error}")
    if result.code is None:
        raise AuthorizationError("Timed out waiting for the authorization callback")
    if result.state != expected_state:
        raise AuthorizationError("Authorization state mismatch")
    return result.code


async def exchange_code(
    code: str,
    *,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    token_url: str,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 10.0,
    clock: Callable[[], datetime] = utcnow,
) -> TokenRecord:
    """Exchange an authorization code for the first token record."""
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
    }
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    try:
        if http_client is not None:
            response = await http_client.post(token_url, data=data, headers=headers, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(token_url, data=data, headers=headers)
    except httpx.HTTPError as e:
        raise ReauthorizationRequired(f"Code exchange failed: {type(e).__name__}") from e

    if not response.is_success:
        body = truncate_body(response.text)
        logger.error("Code exchange rejected", status_code=response.status_code, body=body)
        raise ReauthorizationRequired(
            f"Code exchange rejected with status {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    try:
        return TokenRecord.from_token_response(response.json(), issued_at=clock())
    except (TypeError, ValueError) as e:
        raise ReauthorizationRequired("Code exchange returned an unusable body") from e


def create_passport(
    access_token: str,
    refresh_token: str,
    expires_in: int = DEFAULT_PASSPORT_EXPIRES_IN,
    clock: Callable[[], datetime] = utcnow,
) -> TokenRecord:
    """Build a record from tokens copied out of the developer portal."""
    access_token = access_token.strip()
    refresh_token = refresh_token.strip()
    if not access_token or not refresh_token:
        raise ValueError("Both access token and refresh token are required")
    return TokenRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        issued_at=clock(),
        expires_in=expires_in,
    )
