"""Pytest configuration and fixtures for whoopdash tests."""

import asyncio
import json
import urllib.parse
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import structlog

from whoopdash.auth.store import TokenStore
from whoopdash.auth.tokens import TokenRecord
from whoopdash.config.settings import DashboardSettings, WhoopSettings

NOW = datetime(2026, 1, 19, 12, 0, tzinfo=timezone.utc)
TOKEN_PATH = "/oauth/oauth2/token"
API_PREFIX = "/developer/v1"


def make_record(
    access_token: str = "access-old",
    refresh_token: str = "refresh-old",
    age_seconds: int = 0,
    expires_in: int = 3600,
) -> TokenRecord:
    """A record issued ``age_seconds`` before NOW."""
    return TokenRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        issued_at=NOW - timedelta(seconds=age_seconds),
        expires_in=expires_in,
    )


class FakeWhoop:
    """httpx handler standing in for the Whoop OAuth and data endpoints.

    ``routes`` maps a URL path (without the /developer/v1 prefix) to a
    (status, json body) pair; anything else answers 404.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, object]] = {}
        self.token_response: tuple[int, object] = (
            200,
            {
                "access_token": "access-new",
                "refresh_token": "refresh-new",
                "expires_in": 3600,
                "token_type": "bearer",
                "scope": "offline read:recovery",
            },
        )
        self.requests: list[httpx.Request] = []
        self.token_requests: list[dict[str, str]] = []
        self.fail_paths: set[str] = set()

    def route(self, path: str, body: object, status: int = 200) -> None:
        self.routes[path] = (status, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == TOKEN_PATH:
            form = urllib.parse.parse_qs(request.content.decode())
            self.token_requests.append({k: v[0] for k, v in form.items()})
            status, body = self.token_response
            return httpx.Response(status, json=body)

        path = path.removeprefix(API_PREFIX)
        if path in self.fail_paths:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.routes:
            status, body = self.routes[path]
            return httpx.Response(status, json=body)
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def data_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != TOKEN_PATH]

    def bearer_tokens(self) -> list[str]:
        return [r.headers["Authorization"].removeprefix("Bearer ") for r in self.data_requests]


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def fake_whoop():
    return FakeWhoop()


@pytest.fixture
def transport(fake_whoop):
    return httpx.MockTransport(fake_whoop)


@pytest.fixture
def make_client():
    """Factory for AsyncClients that are closed at teardown."""
    clients: list[httpx.AsyncClient] = []

    def _make(transport: httpx.AsyncBaseTransport) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=transport)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        asyncio.run(client.aclose())


@pytest.fixture
def http_client(make_client, transport):
    return make_client(transport)


@pytest.fixture
def token_store(tmp_path):
    return TokenStore(tmp_path / "config" / "whoop-token.json")


@pytest.fixture
def whoop_settings():
    return WhoopSettings(
        _env_file=None,
        client_id="client-123",
        client_secret="client-secret",
        access_token="",
        refresh_token="",
    )


@pytest.fixture
def dashboard_settings(tmp_path):
    return DashboardSettings(
        _env_file=None,
        token_file=tmp_path / "config" / "whoop-token.json",
        snapshot_file=tmp_path / "data" / "all-data.json",
    )


@pytest.fixture
def read_snapshot(dashboard_settings):
    def _read() -> dict:
        return json.loads(dashboard_settings.snapshot_file.read_text())

    return _read


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
