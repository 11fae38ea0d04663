"""Signed session tokens carried in the session cookie."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from stalerepos.config.settings import settings


def create_session_token(account_id: int, *, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes or settings.SESSION_EXPIRE_MINUTES)
    payload = {"sub": str(account_id), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)


def decode_session_token(token: str) -> Optional[int]:
    """Account id from a session token, or None when invalid or expired."""

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.SESSION_ALGORITHM])
    except JWTError:
        return None

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
