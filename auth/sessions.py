"""
auth/sessions.py -- Session tokens binding a verified username to a browser.

A session token is a signed token (see auth/tokens.py) whose payload is the
username, length-prefixed so the payload boundary is unambiguous:

    payload = uint16_LE(len(utf8(user))) || utf8(user)

Nothing is stored server-side. check() rebuilds the Session from the cookie
on every request; the allow-list is re-checked by the gate, not here.

The round trip is byte-exact: for a token that verifies, check() returns the
very string passed to new().
"""

from __future__ import annotations

import logging
import struct
from datetime import datetime, timezone

from auth.errors import MalformedToken, TokenError
from auth.models import Session
from auth.signer import Signer
from auth.tokens import SignedTokens
from core.clock import Clock, default_clock

logger = logging.getLogger("tokengate.auth.sessions")

DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 60 * 60

_LENGTH = struct.Struct("<H")
MAX_USER_BYTES = 0xFFFF


def encode_user(user: str) -> bytes:
    """Return the session payload for user.

    Raises ValueError for an empty name or one longer than 65535 UTF-8 bytes.
    """
    raw = user.encode("utf-8")
    if not raw:
        raise ValueError("username must not be empty")
    if len(raw) > MAX_USER_BYTES:
        raise ValueError("username is too long for a session token")
    return _LENGTH.pack(len(raw)) + raw


def decode_user(payload: bytes) -> str:
    """Inverse of encode_user(). Raises MalformedToken on any inconsistency."""
    if len(payload) <= _LENGTH.size:
        raise MalformedToken("session payload is too short")
    (length,) = _LENGTH.unpack_from(payload)
    raw = payload[_LENGTH.size :]
    if length != len(raw):
        raise MalformedToken("session payload length prefix does not match")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedToken("session payload is not UTF-8") from None


class SessionService:
    """Issue and verify session tokens.

    Args:
        signer:      Signer owning the session key.
        ttl_seconds: Session lifetime. Long enough to outlive a visit (default 7 days).
        clock:       Nanosecond time source; tests inject a fake.
    """

    def __init__(
        self,
        signer: Signer,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        *,
        clock: Clock = default_clock,
    ) -> None:
        self._tokens = SignedTokens(signer, ttl_seconds, clock=clock)

    def new(self, user: str) -> tuple[str, datetime]:
        """Return (token, expires_at) for user.

        expires_at is issued_at + TTL as an aware UTC datetime, so the caller
        can give the cookie the same lifetime as the token.
        """
        token, issued_at_ns = self._tokens.issue(encode_user(user))
        expires_ns = issued_at_ns + self._tokens.ttl_ns
        expires_at = datetime.fromtimestamp(expires_ns / 1e9, tz=timezone.utc)
        return token, expires_at

    def lookup(self, token: str) -> Session | None:
        """Return the Session carried by token, or None if it does not verify."""
        try:
            decoded = self._tokens.verify(token)
            return Session(user=decode_user(decoded.payload))
        except TokenError as exc:
            logger.debug("session token rejected: %s", type(exc).__name__)
            return None

    def check(self, token: str) -> tuple[bool, str]:
        """Return (True, user) for a valid session token, (False, "") otherwise.

        Never raises.
        """
        session = self.lookup(token)
        if session is None:
            return False, ""
        return True, session.user
