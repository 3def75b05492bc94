"""
auth/gate.py -- Per-request access decisions.

AccessGate is the only place that combines tokens, the allow-list, the
identity provider, and the session cookie. It is HTTP-agnostic: each
operation reads and writes cookies through a CookieTransport and returns an
Outcome, which web/routes.py turns into a response.

Request states:

  Anonymous --sign_in--> PendingIdentity --callback--> IdentityVerifiedUnauthorized
                                         --callback--> IdentityVerifiedAuthorized

Outcomes:
  ANONYMOUS    -- serve the public sign-in page
  REDIRECT     -- send the browser to Outcome.location
  UNAUTHORIZED -- verified identity not on the allow-list; no session
  FAILED       -- bad state or provider exchange failure; no session
  AUTHORIZED   -- serve as Outcome.user

Policy:
  [G1] The allow-list is re-checked on every protected request, not only at
       sign-in. Removing a user revokes access on their next request even
       though their session token still verifies.
  [G2] Every token failure degrades to ANONYMOUS and clears the cookie; none
       of them raise.
  [G3] Sign-out clears the cookie unconditionally.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from auth.errors import IdentityExchangeFailure, NotAuthorized
from auth.models import AllowList
from auth.oauth import IdentityProvider
from auth.sessions import SessionService
from auth.tokens import StateTokenService

logger = logging.getLogger("tokengate.auth.gate")

DEFAULT_COOKIE_NAME = "session"


class CookieTransport(Protocol):
    """Thin cookie I/O for one request/response pair."""

    def read_cookie(self, name: str) -> str: ...

    def write_cookie(self, name: str, value: str, expires: datetime) -> None: ...

    def clear_cookie(self, name: str) -> None: ...


class OutcomeKind(str, Enum):
    ANONYMOUS = "anonymous"
    REDIRECT = "redirect"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class Outcome:
    """Terminal decision for one request.

    location is set for REDIRECT, user for AUTHORIZED and UNAUTHORIZED,
    reason for FAILED (a short code, safe to show; never an exception text).
    """

    kind: OutcomeKind
    location: str | None = None
    user: str | None = None
    reason: str | None = None

    @classmethod
    def anonymous(cls) -> Outcome:
        return cls(OutcomeKind.ANONYMOUS)

    @classmethod
    def redirect(cls, location: str) -> Outcome:
        return cls(OutcomeKind.REDIRECT, location=location)

    @classmethod
    def unauthorized(cls, user: str) -> Outcome:
        return cls(OutcomeKind.UNAUTHORIZED, user=user)

    @classmethod
    def failed(cls, reason: str) -> Outcome:
        return cls(OutcomeKind.FAILED, reason=reason)

    @classmethod
    def authorized(cls, user: str) -> Outcome:
        return cls(OutcomeKind.AUTHORIZED, user=user)


class AccessGate:
    """Drive the sign-in flow and gate protected requests.

    All collaborators are injected and immutable, so one gate instance is
    shared by every concurrent request.
    """

    def __init__(
        self,
        states: StateTokenService,
        sessions: SessionService,
        allow_list: AllowList,
        provider: IdentityProvider,
        *,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        home: str = "/",
    ) -> None:
        self.states = states
        self.sessions = sessions
        self.allow_list = allow_list
        self.provider = provider
        self.cookie_name = cookie_name
        self.home = home

    def check_member(self, user: str) -> None:
        """Raise NotAuthorized unless user is on the allow-list."""
        if user not in self.allow_list:
            raise NotAuthorized(user)

    # ------------------------------------------------------------------
    # Protected requests
    # ------------------------------------------------------------------

    def authorize(self, cookies: CookieTransport) -> Outcome:
        """Decide a protected request from its session cookie [G1][G2]."""
        ok, user = self.sessions.check(cookies.read_cookie(self.cookie_name))
        if not ok:
            cookies.clear_cookie(self.cookie_name)
            return Outcome.anonymous()
        try:
            self.check_member(user)
        except NotAuthorized:
            logger.warning("Revoked user %r presented a valid session.", user)
            cookies.clear_cookie(self.cookie_name)
            return Outcome.unauthorized(user)
        return Outcome.authorized(user)

    # ------------------------------------------------------------------
    # Sign-in flow
    # ------------------------------------------------------------------

    def sign_in(self, cookies: CookieTransport) -> Outcome:
        """Redirect to the provider with a fresh state token. Sets no cookie."""
        return Outcome.redirect(self.provider.sign_in_url(self.states.new()))

    async def callback(self, cookies: CookieTransport, params: Mapping[str, str]) -> Outcome:
        """Finish sign-in: validate state, exchange the code, check the allow-list.

        Only an allow-listed, provider-verified user gets a session cookie.
        """
        if params.get("error"):
            logger.info("Identity provider returned error %r.", params.get("error"))
            return Outcome.failed("provider_error")
        if not self.states.check(params.get("state", "")):
            logger.warning("Sign-in callback with an invalid or expired state.")
            return Outcome.failed("bad_state")

        try:
            user = await self.provider.exchange(params)
        except IdentityExchangeFailure as exc:
            logger.warning("Identity exchange failed: %s", exc)
            return Outcome.failed("exchange_failed")

        try:
            self.check_member(user)
        except NotAuthorized:
            logger.warning("Unauthorized user %r tried to sign in.", user)
            return Outcome.unauthorized(user)

        logger.info("User %r signed in.", user)
        token, expires = self.sessions.new(user)
        cookies.write_cookie(self.cookie_name, token, expires)
        return Outcome.redirect(self.home)

    def sign_out(self, cookies: CookieTransport) -> Outcome:
        """Clear the session cookie, whatever state the browser was in [G3]."""
        cookies.clear_cookie(self.cookie_name)
        return Outcome.redirect(self.home)
