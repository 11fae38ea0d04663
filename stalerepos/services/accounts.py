"""Account persistence for GitHub logins."""

from __future__ import annotations

import logging
from typing import Any, Optional

from stalerepos.exceptions import AccountNotFoundError
from stalerepos.github.oauth import GitHubAuthResponse
from stalerepos.models.account import Account

logger = logging.getLogger(__name__)


def save_account_auth(db: Any, auth: GitHubAuthResponse) -> Account:
    """Create or refresh the account for `auth.username`; tokens are always overwritten."""

    account = get_account_by_username(db, auth.username)
    if account is None:
        account = Account(username=auth.username, access_token=auth.access_token)
        db.add(account)
        logger.info("Created account", extra={"username": auth.username})

    account.access_token = auth.access_token
    account.refresh_token = auth.refresh_token
    account.access_token_expires_in = auth.access_token_expires_in
    account.refresh_token_expires_in = auth.refresh_token_expires_in
    db.commit()
    db.refresh(account)
    return account


def get_account(db: Any, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(f"Account {account_id} not found")
    return account


def get_account_by_username(db: Any, username: str) -> Optional[Account]:
    return db.query(Account).filter(Account.username == username).first()
