"""
auth/errors.py -- Exception types for token verification and sign-in.

Token errors are raised inside the verification pipeline and recovered into
a plain "invalid" result by the public check() methods -- they never reach
the HTTP layer. NotAuthorized and IdentityExchangeFailure are turned into
gate outcomes by auth/gate.py.

Messages never include token or key material.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for everything raised by the auth package."""


# ---------------------------------------------------------------------------
# Token verification failures -- always degrade to "invalid"
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    """A token failed decoding or verification."""


class MalformedToken(TokenError):
    """Not valid base64, or too short to hold a timestamp and a tag."""


class TagMismatch(TokenError):
    """The tag does not match the signed bytes (tampered or forged token)."""


class Expired(TokenError):
    """The tag is valid but the token is at least as old as its TTL."""


class FutureTimestamp(TokenError):
    """The token claims to be issued in the future."""


# ---------------------------------------------------------------------------
# Sign-in failures -- surfaced to the user, no session side effects
# ---------------------------------------------------------------------------


class NotAuthorized(AuthError):
    """A verified identity that is not on the allow-list."""

    def __init__(self, user: str) -> None:
        super().__init__(f"User {user!r} is not authorized.")
        self.user = user


class IdentityExchangeFailure(AuthError):
    """The identity provider could not turn the callback into a username."""
