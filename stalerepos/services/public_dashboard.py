"""Read-only public dashboard by slug."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from stalerepos.models.account_config import AccountConfig
from stalerepos.services.accounts import get_account
from stalerepos.services.scan.repository_store import RepositoryStore


def get_public_dashboard(db: Any, slug: str, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
    """Abandoned, non-private repositories of a public dashboard; None when not published."""

    config = (
        db.query(AccountConfig)
        .filter(AccountConfig.dashboard_slug == slug, AccountConfig.dashboard_public.is_(True))
        .first()
    )
    if config is None:
        return None

    account = get_account(db, config.account_id)
    threshold = config.abandonment_threshold_months
    repositories = [
        row
        for row in RepositoryStore(db).list_abandoned(account.id, threshold, now=now)
        if not row.private
    ]
    last_scanned = max((row.last_scanned_at for row in repositories if row.last_scanned_at), default=None)

    return {
        "repositories": [row.to_dict() for row in repositories],
        "config": {
            "abandonment_threshold_months": threshold,
            "dashboard_slug": config.dashboard_slug,
        },
        "user": {"username": account.username},
        "stats": {
            "total": len(repositories),
            "lastUpdated": last_scanned.isoformat() if last_scanned else None,
        },
    }
