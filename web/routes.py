"""
web/routes.py -- HTML routes: sign-in flow, public assets, and the gated site.

Every decision is delegated to the AccessGate on app.state; these handlers
only translate between HTTP and the gate:

  request cookies  --StarletteCookies-->  gate operation  --> Outcome
  Outcome          --_respond()-------->  HTML / redirect + queued cookie changes

Route registration order matters. The catch-all protected route must be
registered last or it would swallow the sign-in and asset paths.

Routes:
  GET /github/signin     -- redirect to GitHub with a fresh state token
  GET /github/callback   -- validate state, exchange code, set session cookie
  GET /github/signout    -- clear the session cookie, redirect /
  GET /assets/{path}     -- public static files
  GET /favicon.ico       -- public
  GET /style.css         -- public
  GET /{path}            -- everything else requires an allow-listed session:
                              /, /proj.html      signed-in home page
                              /data/session.js   `var siteData = {...};`
                              /js/proj.js        site script, from SITE_DIR
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from api.limiter import callback_limit, limiter
from auth.gate import AccessGate, Outcome, OutcomeKind
from web.cookies import StarletteCookies

logger = logging.getLogger("tokengate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Whitelist mapping for Outcome.reason. The raw provider error or exception
# text is NEVER passed to templates -- only the message from this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "provider_error": "Sign-in was cancelled or refused by GitHub.",
    "bad_state": "This sign-in link has expired. Please try again.",
    "exchange_failed": "Sign-in with GitHub failed. Please try again.",
}
_DEFAULT_ERROR = "Sign-in failed. Please try again."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _gate(request: Request) -> AccessGate:
    return request.app.state.gate


def _cookies(request: Request) -> StarletteCookies:
    return StarletteCookies(request, secure=request.app.state.settings.secure_cookies)


def _serve_file(request: Request, relpath: str, media_type: str | None = None) -> Response:
    """Serve relpath from SITE_DIR, refusing anything that escapes it."""
    root = Path(request.app.state.settings.site_dir).resolve()
    target = (root / relpath).resolve()
    if not target.is_relative_to(root) or not target.is_file():
        return HTMLResponse("File not found.", status_code=404)
    return FileResponse(target, media_type=media_type)


def _respond(request: Request, outcome: Outcome, cookies: StarletteCookies) -> Response:
    """Map a non-AUTHORIZED outcome to a response and apply cookie changes."""
    if outcome.kind is OutcomeKind.REDIRECT:
        resp: Response = RedirectResponse(outcome.location or "/", status_code=302)
    elif outcome.kind is OutcomeKind.UNAUTHORIZED:
        resp = templates.TemplateResponse(request, "unauthorized.html", {"user": outcome.user}, status_code=403)
    elif outcome.kind is OutcomeKind.FAILED:
        message = _ERROR_MESSAGES.get(outcome.reason or "", _DEFAULT_ERROR)
        resp = templates.TemplateResponse(request, "error.html", {"message": message}, status_code=400)
    else:
        resp = templates.TemplateResponse(request, "signin.html", {})
    resp.headers["Cache-Control"] = "no-store"
    return cookies.apply(resp)


# ---------------------------------------------------------------------------
# Sign-in flow
# ---------------------------------------------------------------------------


@router.get("/github/signin")
def github_signin(request: Request) -> Response:
    """Redirect the browser to GitHub, carrying a fresh state token."""
    cookies = _cookies(request)
    return _respond(request, _gate(request).sign_in(cookies), cookies)


@router.get("/github/callback")
@limiter.limit(callback_limit)
async def github_callback(request: Request) -> Response:
    """Finish GitHub sign-in.

    The gate validates the echoed state, exchanges the code for a username,
    checks the allow-list, and only then issues the session cookie.
    """
    cookies = _cookies(request)
    outcome = await _gate(request).callback(cookies, dict(request.query_params))
    return _respond(request, outcome, cookies)


@router.get("/github/signout")
def github_signout(request: Request) -> Response:
    cookies = _cookies(request)
    return _respond(request, _gate(request).sign_out(cookies), cookies)


# ---------------------------------------------------------------------------
# Public static files
# ---------------------------------------------------------------------------


@router.get("/assets/{path:path}")
def assets(request: Request, path: str) -> Response:
    return _serve_file(request, f"assets/{path}")


@router.get("/favicon.ico")
def favicon(request: Request) -> Response:
    return _serve_file(request, "assets/favicon.ico")


@router.get("/style.css")
def style(request: Request) -> Response:
    return _serve_file(request, "style.css", media_type="text/css")


# ---------------------------------------------------------------------------
# Gated site -- must be registered last
# ---------------------------------------------------------------------------


@router.get("/{path:path}")
def protected(request: Request, path: str) -> Response:
    """Serve the signed-in site, or fall back to the sign-in page.

    The gate re-checks the allow-list on every request, so a revoked user
    loses access on their next page load.
    """
    cookies = _cookies(request)
    outcome = _gate(request).authorize(cookies)
    if outcome.kind is not OutcomeKind.AUTHORIZED:
        return _respond(request, outcome, cookies)

    user = outcome.user
    logger.info("[%s] /%s", user, path)
    if path in ("", "proj.html"):
        resp: Response = templates.TemplateResponse(request, "home.html", {"user": user})
    elif path == "data/session.js":
        data = json.dumps({"session": {"user": user}})
        resp = Response(f"var siteData = {data};", media_type="application/javascript")
    elif path == "js/proj.js":
        resp = _serve_file(request, path, media_type="application/javascript")
    else:
        resp = HTMLResponse("File not found.", status_code=404)
    resp.headers["Cache-Control"] = "no-store"
    return cookies.apply(resp)
