"""
api/main.py -- FastAPI application entry point for tokengate.

Owns the ASGI app object, the lifespan that wires the AccessGate from
configuration, the middleware, and the JSON endpoints. The HTML sign-in
routes live in web/routes.py; asgi.py attaches them after everything here.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Request path through the app:
  SlowAPIMiddleware  -> per-route limits declared in api.limiter
  access_log         -> one INFO line per request (path only, never the query)
  route handler

A bad configuration (short key, missing GitHub credentials) raises inside
lifespan, so the server refuses to start instead of failing on first use.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse, SessionResponse
from auth.dependencies import build_gate, get_current_user
from core.config import get_settings

VERSION = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")


# ---------------------------------------------------------------------------
# Startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build settings and the gate once; every request shares them.

    The gate only holds immutable values (keys, TTLs, allow-list), so no
    locking is needed across concurrent requests.
    """
    settings = get_settings()
    if settings.debug:
        logging.getLogger("tokengate").setLevel(logging.DEBUG)

    gate = build_gate(settings)
    app.state.settings = settings
    app.state.gate = gate

    logger.info(
        "tokengate %s ready: %d allowed user(s), session TTL %ds",
        VERSION,
        len(gate.allow_list),
        settings.session_ttl_seconds,
    )
    if not gate.allow_list:
        logger.warning("ALLOWED_USERS is empty -- nobody can sign in")

    yield

    logger.info("tokengate stopped")


app = FastAPI(
    title="tokengate",
    description="Stateless signed-token sign-in gate.",
    version=VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def access_log(request: Request, call_next):
    """Log method, path, status and latency.

    The query string is left out on purpose: the callback carries the
    authorization code and the state token there.
    """
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    client = request.client.host if request.client else "-"
    logger.info("%s %s -> %d (%.1fms) from %s", request.method, request.url.path, response.status_code, elapsed_ms, client)
    return response


# ---------------------------------------------------------------------------
# Error envelope
#
# Every JSON error has the shape {"error": {"code", "message", "detail"}}.
# ---------------------------------------------------------------------------


def _error(status: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(RateLimitExceeded)
async def on_rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s: %s", request.url.path, exc.detail)
    response = _error(429, "rate_limited", "Too many sign-in attempts. Try again later.", str(exc.detail))
    response.headers["Retry-After"] = "60"
    return response


@app.exception_handler(HTTPException)
async def on_http_error(request: Request, exc: HTTPException) -> JSONResponse:
    # get_current_user already raises with a {"code", "message"} dict.
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback; the client only gets a generic 500."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# JSON endpoints
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness probe. No auth, no rate limit."""
    return HealthResponse(version=VERSION)


@app.get("/api/v1/session", tags=["Auth"])
async def current_session(user: str = Depends(get_current_user)) -> SessionResponse:
    """The signed-in user, or 401 without a valid allow-listed session."""
    return SessionResponse(user=user)
