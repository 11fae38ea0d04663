"""GitHub OAuth code exchange and personal-access-token validation."""

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from stalerepos.config.settings import settings
from stalerepos.exceptions import (
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubScopeError,
    GitHubSourceError,
    OAuthExchangeError,
)
from stalerepos.github.client import GitHubClient, sanitize_log_extra

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
REQUIRED_SCOPES = ("repo",)


@dataclass(slots=True)
class GitHubAuthResponse:
    """Tokens plus the login they belong to."""

    access_token: str
    username: str
    refresh_token: Optional[str] = None
    access_token_expires_in: Optional[str] = None
    refresh_token_expires_in: Optional[str] = None
    scopes: tuple[str, ...] = ()


def get_authorization_url(state: str, *, scopes: Optional[str] = None) -> str:
    params = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "redirect_uri": settings.GITHUB_OAUTH_CALLBACK_URL,
        "scope": scopes or settings.GITHUB_OAUTH_SCOPES,
        "state": state,
        "allow_signup": "true",
    }
    return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"


async def exchange_code_for_tokens(
    code: str,
    *,
    transport: Optional[Any] = None,
    client_factory: Callable[[str], GitHubClient] = GitHubClient,
) -> GitHubAuthResponse:
    """Exchange an OAuth callback code for tokens and resolve the user login."""

    data = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "client_secret": settings.GITHUB_CLIENT_SECRET,
        "code": code,
        "redirect_uri": settings.GITHUB_OAUTH_CALLBACK_URL,
    }
    async with httpx.AsyncClient(
        headers={"Accept": "application/json"},
        timeout=settings.GITHUB_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        try:
            token_resp = await client.post(TOKEN_URL, data=data)
            token_resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise OAuthExchangeError(f"GitHub OAuth request failed: {exc}") from exc
        token_data = token_resp.json()

    if token_data.get("error"):
        raise OAuthExchangeError(
            f"GitHub OAuth error: {token_data.get('error_description') or token_data['error']}"
        )

    access_token = token_data.get("access_token")
    if not access_token:
        raise OAuthExchangeError("GitHub OAuth response did not include an access token")

    async with client_factory(access_token) as github:
        user = await github.get_authenticated_user()
    if user.is_failed or not isinstance(user.data, dict):
        raise OAuthExchangeError(f"Failed to load GitHub user: {user.error}")

    return GitHubAuthResponse(
        access_token=access_token,
        username=str(user.data.get("login")),
        refresh_token=token_data.get("refresh_token"),
        access_token_expires_in=_as_optional_text(token_data.get("expires_in")),
        refresh_token_expires_in=_as_optional_text(token_data.get("refresh_token_expires_in")),
        scopes=_parse_scopes(token_data.get("scope"), separator=","),
    )


async def validate_token(
    token: str,
    *,
    client_factory: Callable[[str], GitHubClient] = GitHubClient,
) -> GitHubAuthResponse:
    """Check a personal access token against GitHub.

    Raises GitHubAuthError for a rejected token, GitHubScopeError when a
    classic token lacks the `repo` scope and GitHubRateLimitError when GitHub
    throttles the check.
    """

    async with client_factory(token) as github:
        user = await github.get_authenticated_user()

    if user.is_unauthorized:
        raise GitHubAuthError("GitHub rejected the token", status_code=401)
    if user.is_failed and user.status_code == 429:
        raise GitHubRateLimitError("GitHub API rate limit exceeded", status_code=429)
    if user.is_failed or not isinstance(user.data, dict):
        raise GitHubSourceError(f"GitHub token validation failed: {user.error}", status_code=user.status_code)

    header_scopes = (user.headers or {}).get("x-oauth-scopes")
    scopes = _parse_scopes(header_scopes, separator=",")
    # Fine-grained tokens do not report scopes; only classic tokens are checked.
    if header_scopes is not None and header_scopes.strip():
        missing = [scope for scope in REQUIRED_SCOPES if scope not in scopes]
        if missing:
            raise GitHubScopeError(f"Token missing required scope(s): {', '.join(missing)}", status_code=403)

    logger.info("Validated GitHub token", extra=sanitize_log_extra(username=user.data.get("login"), scopes=scopes))
    return GitHubAuthResponse(access_token=token, username=str(user.data.get("login")), scopes=scopes)


def _parse_scopes(raw: Any, *, separator: str) -> tuple[str, ...]:
    if not isinstance(raw, str):
        return ()
    return tuple(part.strip() for part in raw.split(separator) if part.strip())


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
