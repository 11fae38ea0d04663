from __future__ import annotations

from datetime import UTC, datetime

from stalerepos.services.account_config import enable_public_dashboard, update_account_config
from stalerepos.services.public_dashboard import get_public_dashboard
from stalerepos.services.scan.repository_store import RepositoryStore

NOW = datetime(2025, 6, 15, tzinfo=UTC)
OLD = datetime(2023, 1, 1, tzinfo=UTC)


def _seed(db, account, scanned) -> None:
    RepositoryStore(db).upsert(
        account.id,
        [
            scanned(1, name="public-stale", last_commit_date=OLD),
            scanned(2, name="private-stale", last_commit_date=OLD, private=True),
            scanned(3, name="public-fresh", last_commit_date=datetime(2025, 6, 1, tzinfo=UTC)),
            scanned(4, name="public-archived", last_commit_date=OLD, is_archived=True),
        ],
        scanned_at=datetime(2025, 6, 14, 8, 0, tzinfo=UTC),
    )
    db.commit()


def test_public_dashboard_lists_only_public_abandoned_repositories(db, account, scanned) -> None:
    _seed(db, account, scanned)
    enable_public_dashboard(db, account.id)
    db.commit()

    dashboard = get_public_dashboard(db, "octocat-repos", now=NOW)

    assert [repo["name"] for repo in dashboard["repositories"]] == ["public-stale"]
    assert dashboard["config"] == {"abandonment_threshold_months": 6, "dashboard_slug": "octocat-repos"}
    assert dashboard["user"] == {"username": "octocat"}
    assert dashboard["stats"]["total"] == 1
    assert dashboard["stats"]["lastUpdated"].startswith("2025-06-14T08:00:00")


def test_public_dashboard_uses_configured_threshold(db, account, scanned) -> None:
    _seed(db, account, scanned)
    update_account_config(db, account.id, {"dashboard_public": True, "abandonment_threshold_months": 60})

    dashboard = get_public_dashboard(db, "octocat-repos", now=NOW)

    assert dashboard["repositories"] == []
    assert dashboard["config"]["abandonment_threshold_months"] == 60


def test_unknown_or_private_dashboard_is_not_found(db, account, scanned) -> None:
    _seed(db, account, scanned)

    assert get_public_dashboard(db, "octocat-repos", now=NOW) is None
    assert get_public_dashboard(db, "nobody-repos", now=NOW) is None
