"""
core/clock.py -- Injectable time source for token issue and verification.

Every TTL decision in auth/ depends on a Clock passed in at construction
rather than calling time.time_ns() directly, so expiry boundaries can be
tested deterministically with a fake clock.

A Clock is any zero-argument callable returning nanoseconds since the UNIX
epoch as an int. Nanoseconds match the token wire format (int64 LE nanos).

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

from __future__ import annotations

import time
from typing import Protocol

NANOS_PER_SECOND = 1_000_000_000


class Clock(Protocol):
    """Callable protocol returning *nanoseconds* since the UNIX epoch."""

    def __call__(self) -> int: ...


def default_clock() -> int:
    """Production clock: wall time in nanoseconds via time.time_ns()."""
    return time.time_ns()


def seconds_to_nanos(seconds: float) -> int:
    return int(seconds * NANOS_PER_SECOND)
