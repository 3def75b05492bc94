"""
auth/signer.py -- HMAC-SHA256 signing with an injected secret key.

A Signer owns one immutable key. The state-token and session services each
construct their own Signer, so the two token classes can use different keys
while sharing the same code.

Security design decisions:
  [K1] Keys shorter than 32 bytes are a construction-time fault (ValueError).
       There is no runtime error path in sign() or verify().

  [T1] verify() recomputes the tag and compares with hmac.compare_digest, so
       the comparison time does not depend on how many leading bytes of a
       forged tag happen to match.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

TAG_LEN = hashlib.sha256().digest_size
MIN_KEY_LEN = 32


class Signer:
    """Produce and verify HMAC-SHA256 tags over byte payloads."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes) -> None:
        if len(key) < MIN_KEY_LEN:
            raise ValueError(f"signing key must be at least {MIN_KEY_LEN} bytes, got {len(key)}")
        self._key = bytes(key)

    @classmethod
    def generate(cls) -> Signer:
        """Return a Signer with a fresh random key from secrets.token_bytes()."""
        return cls(secrets.token_bytes(MIN_KEY_LEN))

    def sign(self, payload: bytes) -> bytes:
        return hmac.new(self._key, payload, hashlib.sha256).digest()

    def verify(self, payload: bytes, tag: bytes) -> bool:
        """Return True if tag is the HMAC of payload under this key [T1]."""
        return hmac.compare_digest(self.sign(payload), tag)

    def __repr__(self) -> str:
        # Never expose the key.
        return "Signer(key=<redacted>)"
