"""
web/cookies.py -- Starlette implementation of the gate's CookieTransport.

The gate decides before the response object exists, so writes and clears
are recorded here and applied to whichever response the route builds:

    cookies = StarletteCookies(request, secure=settings.secure_cookies)
    outcome = gate.authorize(cookies)
    resp = ...
    return cookies.apply(resp)

Session cookies are written httpOnly (JS cannot read them) and
samesite="lax" (not sent on cross-site POST). secure follows SECURE_COOKIES.
"""

from __future__ import annotations

from datetime import datetime

from starlette.requests import Request
from starlette.responses import Response


class StarletteCookies:
    """Read cookies from a request; queue cookie changes for the response."""

    def __init__(self, request: Request, *, secure: bool = False) -> None:
        self._request = request
        self._secure = secure
        self._writes: dict[str, tuple[str, datetime]] = {}
        self._clears: set[str] = set()

    def read_cookie(self, name: str) -> str:
        return self._request.cookies.get(name, "")

    def write_cookie(self, name: str, value: str, expires: datetime) -> None:
        self._clears.discard(name)
        self._writes[name] = (value, expires)

    def clear_cookie(self, name: str) -> None:
        self._writes.pop(name, None)
        # Only send a deletion for cookies the browser actually has.
        if name in self._request.cookies:
            self._clears.add(name)

    def apply(self, response: Response) -> Response:
        for name, (value, expires) in self._writes.items():
            response.set_cookie(
                name,
                value=value,
                expires=expires,
                path="/",
                httponly=True,
                samesite="lax",
                secure=self._secure,
            )
        for name in self._clears:
            response.delete_cookie(name, path="/", httponly=True, samesite="lax", secure=self._secure)
        return response
