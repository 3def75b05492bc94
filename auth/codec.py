"""
auth/codec.py -- Opaque token wire format.

Wire form (bit-exact):

    base64url( int64_LE(issued_at_nanos) || payload || tag )

where tag = HMAC-SHA256(key, int64_LE(issued_at_nanos) || payload), 32 bytes.
The padded URL-safe alphabet is used, so tokens are safe in cookies and
query strings.

decode() splits a token into its three parts but does NOT verify the tag --
that is the Signer's job. Keeping the codec ignorant of keys means it can
also back the `inspect` CLI command.
"""

from __future__ import annotations

import base64
import binascii
import struct

from auth.errors import MalformedToken
from auth.signer import TAG_LEN, Signer

_TIMESTAMP = struct.Struct("<q")
TIMESTAMP_LEN = _TIMESTAMP.size
MIN_TOKEN_LEN = TIMESTAMP_LEN + TAG_LEN


def signed_bytes(issued_at_ns: int, payload: bytes) -> bytes:
    """Return the exact bytes the tag covers: timestamp || payload.

    Raises struct.error if issued_at_ns does not fit a signed 64-bit int.
    """
    return _TIMESTAMP.pack(issued_at_ns) + payload


def encode(issued_at_ns: int, payload: bytes, signer: Signer) -> str:
    """Sign and encode a token issued at issued_at_ns carrying payload."""
    body = signed_bytes(issued_at_ns, payload)
    return base64.urlsafe_b64encode(body + signer.sign(body)).decode("ascii")


def decode(token: str) -> tuple[int, bytes, bytes]:
    """Split a token into (issued_at_ns, payload, tag) without verifying it.

    Raises MalformedToken if the token is not a base64url string or decodes
    to fewer than timestamp + tag bytes.
    """
    if not isinstance(token, str):
        raise MalformedToken("token is not a string")
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
    except (UnicodeEncodeError, binascii.Error):
        raise MalformedToken("token is not valid base64") from None
    # One wire form per token: rejects stray characters, the standard
    # alphabet, and non-zero padding bits that would decode to the same bytes.
    if base64.urlsafe_b64encode(raw).decode("ascii") != token:
        raise MalformedToken("token is not canonical base64url")
    if len(raw) < MIN_TOKEN_LEN:
        raise MalformedToken("token is too short")
    (issued_at_ns,) = _TIMESTAMP.unpack_from(raw)
    return issued_at_ns, raw[TIMESTAMP_LEN:-TAG_LEN], raw[-TAG_LEN:]
