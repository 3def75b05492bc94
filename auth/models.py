"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Values here are
immutable: they are built once from configuration or from a verified token
and never mutated, so they can be shared freely across concurrent requests.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DecodedToken:
    """A token whose tag has already verified.

    Only the verification pipeline in auth/tokens.py constructs these --
    never build one from unverified input.
    """

    issued_at_ns: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class Session:
    """The identity carried by a verified session token.

    Not stored anywhere -- reconstructed from the cookie on every request.
    """

    user: str


@dataclass(frozen=True, slots=True)
class AllowList:
    """Usernames permitted to use the signed-in site.

    Membership only: there are no roles or levels.
    """

    users: frozenset[str]

    @classmethod
    def of(cls, users: Iterable[str]) -> AllowList:
        return cls(frozenset(users))

    def __contains__(self, user: object) -> bool:
        return user in self.users

    def __len__(self) -> int:
        return len(self.users)
