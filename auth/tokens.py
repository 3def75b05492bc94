"""
auth/tokens.py -- Stateless signed tokens and the sign-in state token.

Security design decisions:
  Stateless: nothing is recorded when a token is issued. A token is valid
       iff its tag verifies under the service's key and its age is in
       [0, TTL). Restarting with a new random key invalidates everything.

  [T2] Age is checked after the tag. A token whose tag matches but whose age
       is at least the TTL is Expired; a negative age is FutureTimestamp --
       a forged future timestamp must not extend a token's own lifetime.

  State tokens: empty payload, 3 minute default TTL. They bind the browser
       to a sign-in redirect we issued (CSRF protection). They are NOT
       single-use: within the TTL the same state can be echoed back any
       number of times. That is the accepted cost of keeping no record.

  Verification failures are raised as TokenError subclasses inside
  SignedTokens.verify() and recovered into False by check(). Only the
  exception class name is logged, never the token.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from auth import codec
from auth.errors import Expired, FutureTimestamp, MalformedToken, TagMismatch, TokenError
from auth.models import DecodedToken
from auth.signer import Signer
from core.clock import Clock, default_clock, seconds_to_nanos

logger = logging.getLogger("tokengate.auth.tokens")

DEFAULT_STATE_TTL_SECONDS = 3 * 60


# ---------------------------------------------------------------------------
# Shared pipeline: encode + sign, decode + verify + age check
# ---------------------------------------------------------------------------


class SignedTokens:
    """Issue and verify tokens of one class (one key, one TTL).

    Args:
        signer:      Signer owning this class's key.
        ttl_seconds: Maximum age. A token aged exactly ttl_seconds is expired.
        clock:       Nanosecond time source; tests inject a fake.
    """

    def __init__(self, signer: Signer, ttl_seconds: float, *, clock: Clock = default_clock) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.signer = signer
        self.ttl_ns = seconds_to_nanos(ttl_seconds)
        self.clock = clock

    def issue(self, payload: bytes = b"") -> tuple[str, int]:
        """Return (token, issued_at_ns) for payload stamped with the current time."""
        issued_at_ns = self.clock()
        return codec.encode(issued_at_ns, payload, self.signer), issued_at_ns

    def verify(self, token: str) -> DecodedToken:
        """Decode and fully verify a token.

        Raises:
            MalformedToken:  not base64url, or too short.
            TagMismatch:     tag does not cover timestamp || payload.
            FutureTimestamp: issued after "now".
            Expired:         age >= TTL.
        """
        issued_at_ns, payload, tag = codec.decode(token)
        body = codec.signed_bytes(issued_at_ns, payload)
        if not self.signer.verify(body, tag):
            raise TagMismatch("tag does not match")

        elapsed = self.clock() - issued_at_ns
        if elapsed < 0:
            raise FutureTimestamp("token issued in the future")
        if elapsed >= self.ttl_ns:
            raise Expired("token is older than its TTL")
        return DecodedToken(issued_at_ns=issued_at_ns, payload=payload)


# ---------------------------------------------------------------------------
# Sign-in state tokens (CSRF binding for the provider redirect)
# ---------------------------------------------------------------------------


class StateTokenService:
    """Short-lived, payload-free tokens echoed back through the sign-in redirect."""

    def __init__(
        self,
        signer: Signer,
        ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
        *,
        clock: Clock = default_clock,
    ) -> None:
        self._tokens = SignedTokens(signer, ttl_seconds, clock=clock)

    def new(self) -> str:
        token, _ = self._tokens.issue()
        return token

    def check(self, token: str) -> bool:
        """Return True iff token is a state token we issued less than TTL ago.

        Never raises: every failure is reported as False.
        """
        try:
            decoded = self._tokens.verify(token)
            if decoded.payload:
                raise MalformedToken("state token carries a payload")
        except TokenError as exc:
            logger.debug("state token rejected: %s", type(exc).__name__)
            return False
        return True
