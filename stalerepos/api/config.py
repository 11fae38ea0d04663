"""Account configuration endpoints."""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stalerepos.api.deps import get_current_account
from stalerepos.config.database import get_db
from stalerepos.exceptions import ConfigValidationError
from stalerepos.models.account import Account
from stalerepos.services.account_config import get_account_config, update_account_config

router = APIRouter(prefix="/api/config", tags=["config"])


class ConfigUpdate(BaseModel):
    # Strings are accepted and coerced by the service so range errors surface as 400.
    abandonment_threshold_months: Optional[Union[int, str]] = None
    dashboard_public: Optional[bool] = None
    scan_private_repos: Optional[bool] = None


@router.get("")
async def read_config(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    config = get_account_config(db, account.id)
    db.commit()
    return {"config": config.to_dict()}


@router.post("")
async def write_config(
    payload: ConfigUpdate,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    try:
        config = update_account_config(db, account.id, payload.model_dump(exclude_none=True))
    except ConfigValidationError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "config": config.to_dict()}
