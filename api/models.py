"""
API request and response models for tokengate JSON endpoints.

Wire shapes for the /api/v1 endpoints. The token and session types the gate
works with are the dataclasses in auth/models.py; nothing here leaks into auth/.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Health / session
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class SessionResponse(BaseModel):
    """Response for GET /api/v1/session -- the signed-in user."""

    model_config = ConfigDict(frozen=True)

    user: str
