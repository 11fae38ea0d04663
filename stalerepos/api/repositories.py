"""Repositories listing filtered by the account's abandonment threshold."""

from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stalerepos.api.deps import get_current_account
from stalerepos.config.database import get_db
from stalerepos.models.account import Account
from stalerepos.services.account_config import get_account_config
from stalerepos.services.scan.repository_store import RepositoryStore

router = APIRouter(prefix="/api/repositories", tags=["repositories"])


@router.get("")
async def list_repositories(
    type: Literal["all", "abandoned", "active"] = "all",
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    config = get_account_config(db, account.id)
    db.commit()
    threshold = config.abandonment_threshold_months
    store = RepositoryStore(db)

    if type == "abandoned":
        rows = store.list_abandoned(account.id, threshold)
    elif type == "active":
        rows = store.list_active(account.id, threshold)
    else:
        rows = store.list_for_account(account.id)

    return {
        "repositories": [row.to_dict() for row in rows],
        "config": {
            "abandonment_threshold_months": threshold,
            "dashboard_public": config.dashboard_public,
            "dashboard_slug": config.dashboard_slug,
        },
        "stats": {"total": len(rows)},
    }
