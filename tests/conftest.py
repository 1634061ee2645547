import json
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from arlo.auth.auth_client import AuthService
from arlo.auth.config import AuthConfig
from arlo.auth.storage.backends import MemoryStorage

START_TIME = 1_700_000_000.0


class FakeClock:
    """Deterministic clock for expiry tests."""

    def __init__(self, now: float = START_TIME):
        self._now = now

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class FakeIdentityProvider:
    """Mock OIDC provider and verification endpoint behind httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

        self.token_status = 200
        self.token_body: Any = {
            "access_token": "T",
            "id_token": "I",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        self.userinfo_status = 200
        self.userinfo_body: Any = {"sub": "u1", "email": "a@b.com"}
        self.end_session_error: Exception | None = None
        self.verify_status = 200
        self.verify_error: Exception | None = None

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/v2/token":
            return self._respond(self.token_status, self.token_body)
        if path == "/oidc/v1/userinfo":
            return self._respond(self.userinfo_status, self.userinfo_body)
        if path == "/oidc/v1/end_session":
            if self.end_session_error:
                raise self.end_session_error
            return httpx.Response(302, headers={"Location": "https://arlo.example.com/login"})
        if path == "/api/verify":
            if self.verify_error:
                raise self.verify_error
            return httpx.Response(self.verify_status, json={"ok": self.verify_status == 200})

        return httpx.Response(404)

    @staticmethod
    def _respond(status: int, body: Any) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, content=json.dumps(body).encode())


def form_data(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into single values."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        provider_domain="auth.example.com",
        client_id="client-123",
        redirect_uri="https://arlo.example.com/auth/callback",
        verify_url="https://gate.example.com/api/verify",
    )


@pytest.fixture
def session_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def flow_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def flag_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
async def http_client(provider):
    client = httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))
    yield client
    await client.aclose()


@pytest.fixture
async def auth_service(
    config, session_storage, flow_storage, flag_storage, clock, http_client
):
    service = AuthService(
        config,
        session_storage=session_storage,
        flow_storage=flow_storage,
        flag_storage=flag_storage,
        clock=clock,
        http_client=http_client,
    )
    yield service
    await service.close(notification_timeout=0.1)
