"""
auth/dependencies.py -- Gate assembly and FastAPI Depends() helpers.

build_gate() turns Settings into a fully wired AccessGate. It runs once in
the application lifespan; the gate is stored on app.state and shared by all
requests.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if there is no valid,
allow-listed session. Neither touches cookies -- cookie cleanup belongs to
the HTML routes that go through AccessGate.authorize().

Layer rule: no imports from web/.
  auth/dependencies.py may import from fastapi (for Request/HTTPException)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.gate import AccessGate
from auth.models import AllowList
from auth.oauth import IdentityProvider, build_identity_provider
from auth.sessions import SessionService
from auth.signer import Signer
from auth.tokens import StateTokenService
from core.clock import Clock, default_clock
from core.config import Settings


def build_gate(
    settings: Settings,
    *,
    provider: IdentityProvider | None = None,
    clock: Clock = default_clock,
) -> AccessGate:
    """Wire an AccessGate from settings.

    The state and session services each get their own Signer built from their
    own key. provider defaults to the configured GitHub provider; tests pass
    a fake.
    """
    states = StateTokenService(Signer(settings.state_key_bytes()), settings.state_ttl_seconds, clock=clock)
    sessions = SessionService(Signer(settings.session_key_bytes()), settings.session_ttl_seconds, clock=clock)
    return AccessGate(
        states,
        sessions,
        AllowList.of(settings.allowed_users),
        provider or build_identity_provider(settings),
        cookie_name=settings.session_cookie_name,
    )


def get_gate(request: Request) -> AccessGate:
    return request.app.state.gate


def try_get_current_user(request: Request) -> str | None:
    """Return the allow-listed user of the request's session cookie, or None.

    Never raises.
    """
    gate = get_gate(request)
    session = gate.sessions.lookup(request.cookies.get(gate.cookie_name, ""))
    if session is None or session.user not in gate.allow_list:
        return None
    return session.user


def get_current_user(request: Request) -> str:
    """Require a signed-in, allow-listed user. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: str = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
