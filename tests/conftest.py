"""
tests/conftest.py -- Shared test fixtures for tokengate.

This module provides:
  - FakeClock: settable nanosecond clock so TTL boundaries are deterministic
  - FakeIdentityProvider: maps callback codes to usernames, no network
  - MemoryCookies: in-memory CookieTransport for driving AccessGate directly
  - state_signer / session_signer: Signers over the fixed test keys
  - state_service / session_service / gate: services wired with those signers
  - make_cookies / make_settings: factories for MemoryCookies and Settings
  - web_client: TestClient over the real ASGI app with a patched lifespan

The env vars below must be set before any api/ or web/ import: the callback
rate limit is read from get_settings() when the route is called, and the
default 10/minute would trip across the test session.
"""

from __future__ import annotations

import os
import time
from collections.abc import Generator, Mapping
from contextlib import asynccontextmanager
from datetime import datetime
from urllib.parse import urlencode

# CRITICAL: set before any import that reads get_settings().
os.environ.setdefault("CALLBACK_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.dependencies import build_gate
from auth.errors import IdentityExchangeFailure
from auth.gate import AccessGate
from auth.models import AllowList
from auth.sessions import SessionService
from auth.signer import Signer
from auth.tokens import StateTokenService
from core.config import Settings

STATE_KEY = b"s" * 32
SESSION_KEY = b"k" * 32
SIGN_IN_BASE = "https://idp.example/authorize"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Clock returning a settable nanosecond timestamp."""

    def __init__(self, now_ns: int | None = None) -> None:
        self.now_ns = time.time_ns() if now_ns is None else now_ns

    def __call__(self) -> int:
        return self.now_ns

    def advance(self, seconds: float) -> None:
        self.now_ns += int(seconds * 1_000_000_000)


class FakeIdentityProvider:
    """Identity provider double: code -> username, unknown code -> failure."""

    def __init__(self, codes: Mapping[str, str] | None = None) -> None:
        self.codes = dict(codes or {})
        self.exchanged: list[str] = []

    def sign_in_url(self, state: str) -> str:
        return f"{SIGN_IN_BASE}?{urlencode({'state': state})}"

    async def exchange(self, params: Mapping[str, str]) -> str:
        code = params.get("code", "")
        self.exchanged.append(code)
        if code not in self.codes:
            raise IdentityExchangeFailure("unknown code")
        return self.codes[code]


class MemoryCookies:
    """CookieTransport over a dict, recording what the gate did."""

    def __init__(self, jar: dict[str, str] | None = None) -> None:
        self.jar = dict(jar or {})
        self.written: dict[str, tuple[str, datetime]] = {}
        self.cleared: list[str] = []

    def read_cookie(self, name: str) -> str:
        return self.jar.get(name, "")

    def write_cookie(self, name: str, value: str, expires: datetime) -> None:
        self.jar[name] = value
        self.written[name] = (value, expires)

    def clear_cookie(self, name: str) -> None:
        self.jar.pop(name, None)
        self.cleared.append(name)


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state_signer() -> Signer:
    return Signer(STATE_KEY)


@pytest.fixture
def session_signer() -> Signer:
    return Signer(SESSION_KEY)


@pytest.fixture
def sign_in_base() -> str:
    """URL prefix of every redirect issued by the fake identity provider."""
    return SIGN_IN_BASE


@pytest.fixture
def make_cookies() -> type[MemoryCookies]:
    """Factory for cookie transports: make_cookies({"session": token})."""
    return MemoryCookies


@pytest.fixture
def state_service(state_signer: Signer, clock: FakeClock) -> StateTokenService:
    return StateTokenService(state_signer, 180, clock=clock)


@pytest.fixture
def session_service(session_signer: Signer, clock: FakeClock) -> SessionService:
    return SessionService(session_signer, 7 * 24 * 3600, clock=clock)


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider({"alice-code": "alice", "mallory-code": "mallory"})


@pytest.fixture
def gate(state_service, session_service, provider) -> AccessGate:
    return AccessGate(state_service, session_service, AllowList.of(["alice"]), provider)


# ---------------------------------------------------------------------------
# Web fixtures
# ---------------------------------------------------------------------------


def _build_settings(**overrides) -> Settings:
    """Settings for tests -- fixed keys, no .env file."""
    values = {
        "state_key": STATE_KEY.decode(),
        "session_key": SESSION_KEY.decode(),
        "allowed_users": ["alice"],
        "github_client_id": "test-client",
        "github_client_secret": "test-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_settings():
    """Factory for Settings with the test keys: make_settings(allowed_users=[...])."""
    return _build_settings


def _patch_lifespan(settings: Settings, provider: FakeIdentityProvider, clock: FakeClock):
    """Return a lifespan that wires a gate with the fake provider and clock."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.gate = build_gate(settings, provider=provider, clock=clock)
        yield

    return test_lifespan


@pytest.fixture
def web_client(provider: FakeIdentityProvider, clock: FakeClock) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the full app (api + web routers).

    follow_redirects=False is essential: the sign-in tests assert on redirect
    locations and Set-Cookie headers, which are invisible once followed.
    """
    app.router.lifespan_context = _patch_lifespan(_build_settings(), provider, clock)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client
