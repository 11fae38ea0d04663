"""Per-account configuration: abandonment threshold and public dashboard."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from stalerepos.config.settings import settings
from stalerepos.exceptions import ConfigValidationError
from stalerepos.models.account_config import AccountConfig
from stalerepos.services.accounts import get_account

logger = logging.getLogger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


def get_account_config(db: Any, account_id: int) -> AccountConfig:
    """Return the account's configuration, creating the default row on first access."""

    config = db.query(AccountConfig).filter(AccountConfig.account_id == account_id).first()
    if config is None:
        config = AccountConfig(
            account_id=account_id,
            abandonment_threshold_months=settings.DEFAULT_ABANDONMENT_THRESHOLD_MONTHS,
            dashboard_public=False,
            scan_private_repos=False,
        )
        db.add(config)
        db.flush()
    return config


def validate_threshold(value: Any) -> int:
    """Coerce to int and check the configured bounds."""

    if isinstance(value, bool) or value is None:
        raise ConfigValidationError("Abandonment threshold must be an integer")
    try:
        months = int(str(value).strip())
    except ValueError as exc:
        raise ConfigValidationError("Abandonment threshold must be an integer") from exc

    low = settings.MIN_ABANDONMENT_THRESHOLD_MONTHS
    high = settings.MAX_ABANDONMENT_THRESHOLD_MONTHS
    if months < low or months > high:
        raise ConfigValidationError(f"Abandonment threshold must be between {low} and {high} months")
    return months


def update_account_config(db: Any, account_id: int, updates: dict[str, Any]) -> AccountConfig:
    """Apply a partial update. Everything is validated before the first write."""

    threshold: Optional[int] = None
    if updates.get("abandonment_threshold_months") is not None:
        threshold = validate_threshold(updates["abandonment_threshold_months"])

    flags: dict[str, bool] = {}
    for key in ("dashboard_public", "scan_private_repos"):
        if updates.get(key) is None:
            continue
        if not isinstance(updates[key], bool):
            raise ConfigValidationError(f"{key} must be a boolean")
        flags[key] = updates[key]

    config = get_account_config(db, account_id)
    if threshold is not None:
        config.abandonment_threshold_months = threshold
    if "scan_private_repos" in flags:
        config.scan_private_repos = flags["scan_private_repos"]
    if flags.get("dashboard_public") is True:
        enable_public_dashboard(db, account_id, config=config)
    elif flags.get("dashboard_public") is False:
        disable_public_dashboard(db, account_id, config=config)

    db.commit()
    db.refresh(config)
    logger.info("Updated account config", extra={"account_id": account_id, "fields": sorted(updates)})
    return config


def generate_dashboard_slug(db: Any, username: str) -> str:
    """`<username>-repos`, lowercased and made unique with `-1`, `-2`, ..."""

    base = _SLUG_INVALID.sub("-", f"{username}-repos".lower())
    slug = base
    counter = 1
    while db.query(AccountConfig).filter(AccountConfig.dashboard_slug == slug).first() is not None:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def enable_public_dashboard(db: Any, account_id: int, *, config: Optional[AccountConfig] = None) -> AccountConfig:
    config = config or get_account_config(db, account_id)
    if not config.dashboard_slug:
        account = get_account(db, account_id)
        config.dashboard_slug = generate_dashboard_slug(db, account.username)
    config.dashboard_public = True
    db.flush()
    return config


def disable_public_dashboard(db: Any, account_id: int, *, config: Optional[AccountConfig] = None) -> AccountConfig:
    config = config or get_account_config(db, account_id)
    config.dashboard_public = False
    config.dashboard_slug = None
    db.flush()
    return config
