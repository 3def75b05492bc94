"""
api/limiter.py -- Process-wide slowapi limiter for the sign-in endpoints.

The sign-in callback is the only route that talks to the identity provider
on behalf of an anonymous client, so it is the one worth throttling. The
limit string comes from CALLBACK_RATE_LIMIT (default "10/minute").

api/main.py mounts SlowAPIMiddleware and exposes this instance on
app.state.limiter; web/routes.py decorates routes with it. Both must use this
one object so they share a single in-memory counter store.

Per-route limits are only enforced by the @limiter.limit wrapper, never by
the middleware, so the decorator goes directly on the function, below
@router.get. Placed above it, FastAPI registers the unwrapped function and
the limit never fires.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def callback_limit() -> str:
    return get_settings().callback_rate_limit
