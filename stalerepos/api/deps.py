"""Shared FastAPI dependencies."""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from stalerepos.config.database import get_db
from stalerepos.config.settings import settings
from stalerepos.exceptions import AccountNotFoundError
from stalerepos.jobs.registry import ScanTaskRegistry
from stalerepos.jobs.scan_job import ScanJob
from stalerepos.models.account import Account
from stalerepos.services.accounts import get_account
from stalerepos.services.session import decode_session_token


def get_current_account(request: Request, db: Session = Depends(get_db)) -> Account:
    """Account behind the session cookie; 401 when there is none."""

    token: Optional[str] = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    account_id = decode_session_token(token)
    if account_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    try:
        return get_account(db, account_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=401, detail="Account no longer exists")


def get_task_registry(request: Request) -> ScanTaskRegistry:
    return request.app.state.scan_registry


def get_scan_job(request: Request) -> ScanJob:
    return request.app.state.scan_job
