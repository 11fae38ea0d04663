"""GitHub OAuth login, personal-access-token login and logout."""

import logging
import secrets

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from stalerepos.config.database import get_db
from stalerepos.config.settings import settings
from stalerepos.exceptions import (
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubScopeError,
    GitHubSourceError,
    OAuthExchangeError,
)
from stalerepos.github import oauth
from stalerepos.models.account import Account
from stalerepos.services.accounts import save_account_auth
from stalerepos.services.session import create_session_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

OAUTH_STATE_MAX_AGE_SECONDS = 600


def _set_session_cookie(response: Response, account: Account) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=create_session_token(account.id),
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.get("/auth/github/login")
def github_login():
    """Redirect to GitHub with a CSRF state kept in a short-lived cookie."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(oauth.get_authorization_url(state))
    response.set_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        value=state,
        max_age=OAUTH_STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return response


@router.get("/auth/github/callback")
async def github_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    db: Session = Depends(get_db),
):
    expected_state = request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        raise HTTPException(status_code=400, detail="Invalid state")
    if not code:
        raise HTTPException(status_code=400, detail="Missing code")

    try:
        auth = await oauth.exchange_code_for_tokens(code)
    except OAuthExchangeError as exc:
        logger.warning("OAuth exchange failed", extra={"error": str(exc)})
        raise HTTPException(status_code=400, detail="Failed to get access token")

    account = save_account_auth(db, auth)
    response = RedirectResponse("/dashboard", status_code=302)
    response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME)
    _set_session_cookie(response, account)
    logger.info("GitHub OAuth login", extra={"username": account.username})
    return response


@router.post("/api/auth/validate-token")
async def validate_personal_token(token: str | None = Body(default=None, embed=True), db: Session = Depends(get_db)):
    """Log in with a personal access token instead of the OAuth flow."""

    if not token or not token.strip():
        raise HTTPException(status_code=400, detail="Token is required")

    try:
        auth = await oauth.validate_token(token.strip())
    except GitHubAuthError:
        raise HTTPException(status_code=401, detail="Invalid token")
    except GitHubScopeError as exc:
        raise HTTPException(status_code=400, detail=f"{exc}. Please ensure it has 'repo' scope.")
    except GitHubRateLimitError:
        raise HTTPException(status_code=429, detail="GitHub API rate limit exceeded. Please try again later.")
    except GitHubSourceError as exc:
        logger.warning("Token validation failed", extra={"error": str(exc), "status_code": exc.status_code})
        raise HTTPException(status_code=502, detail="Failed to validate token")

    account = save_account_auth(db, auth)
    response = JSONResponse({"success": True, "user": {"id": account.id, "username": account.username}})
    _set_session_cookie(response, account)
    return response


@router.post("/auth/logout")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response
