"""
auth/oauth.py -- Identity provider collaborator for the sign-in flow.

The gate treats the identity provider as an opaque capability with two calls:

  sign_in_url(state)  -- where to send the browser, seeded with our state token
  exchange(params)    -- turn the callback query parameters into a verified
                         username, or raise IdentityExchangeFailure

The state parameter is produced and checked by auth/tokens.py, not by the
OAuth library -- no server-side session is needed to remember it.

Supported providers:
  github -- Authorization code flow against GitHub using authlib's httpx
            client. The username is the GitHub `login` from GET /user.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from auth.errors import IdentityExchangeFailure
from core.config import Settings

logger = logging.getLogger("tokengate.auth.oauth")


class IdentityProvider(Protocol):
    """What the gate needs from a third-party sign-in provider."""

    def sign_in_url(self, state: str) -> str: ...

    async def exchange(self, params: Mapping[str, str]) -> str: ...


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


class GitHubIdentityProvider:
    """GitHub OAuth app sign-in.

    Args:
        client_id:     OAuth app client ID.
        client_secret: OAuth app client secret.
        redirect_uri:  Callback URL. None means GitHub uses the URL registered
                       with the app.
        client_kwargs: Extra keyword arguments for the httpx client (timeout,
                       transport). Tests pass an httpx.MockTransport here.
    """

    authorize_url = "https://github.com/login/oauth/authorize"
    access_token_url = "https://github.com/login/oauth/access_token"  # noqa: S105 -- URL, not a password
    api_base_url = "https://api.github.com/"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str | None = None,
        scope: str = "read:user",
        client_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self._client_kwargs = {"timeout": 10.0, **(client_kwargs or {})}

    def sign_in_url(self, state: str) -> str:
        return prepare_grant_uri(
            self.authorize_url,
            client_id=self.client_id,
            response_type="code",
            redirect_uri=self.redirect_uri,
            scope=self.scope,
            state=state,
        )

    async def exchange(self, params: Mapping[str, str]) -> str:
        """Trade the callback code for an access token and read the GitHub login.

        Any transport, protocol, or response-shape failure is reported as
        IdentityExchangeFailure. The message is safe to log but is not shown
        to the user -- the web layer renders a generic error page.
        """
        code = params.get("code")
        if not code:
            raise IdentityExchangeFailure("callback is missing the authorization code")

        try:
            async with AsyncOAuth2Client(
                client_id=self.client_id,
                client_secret=self._client_secret,
                redirect_uri=self.redirect_uri,
                token_endpoint_auth_method="client_secret_post",
                **self._client_kwargs,
            ) as client:
                await client.fetch_token(self.access_token_url, code=code)
                resp = await client.get(self.api_base_url + "user")
                resp.raise_for_status()
                profile = resp.json()
        except (AuthlibBaseError, httpx.HTTPError, ValueError) as exc:
            raise IdentityExchangeFailure(f"GitHub code exchange failed: {type(exc).__name__}") from exc

        login = profile.get("login") if isinstance(profile, dict) else None
        if not isinstance(login, str) or not login:
            raise IdentityExchangeFailure("GitHub profile has no login")
        return login


def build_identity_provider(settings: Settings) -> IdentityProvider:
    """Return the configured provider.

    Raises ValueError at startup when GitHub credentials are missing -- there
    is no way to sign in without them.
    """
    if not settings.github_configured:
        raise ValueError("GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET are required.")
    logger.info("GitHub identity provider configured")
    return GitHubIdentityProvider(settings.github_client_id, settings.github_client_secret)
