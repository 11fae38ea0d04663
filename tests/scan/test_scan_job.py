from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from stalerepos.exceptions import GitHubAuthError
from stalerepos.github.contracts import FetchResult, FetchState
from stalerepos.jobs.registry import ScanTaskRegistry
from stalerepos.jobs.scan_job import ScanJob
from stalerepos.models.repository import Repository
from stalerepos.models.scan import ScanRecord, ScanStatus
from stalerepos.orchestrator import RepositoryScanOrchestrator
from stalerepos.services.scan.repository_store import RepositoryStore
from stalerepos.services.scan.scan_ledger import ScanLedger
from stalerepos.services.scan.scan_service import get_scan_status, recover_interrupted_scans, start_scan


class FakeGitHubClient:
    def __init__(self, repositories: list[dict[str, Any]], failing: set[str] | None = None, status: int = 200):
        self.repositories = repositories
        self.failing = failing or set()
        self.status = status
        self.include_private: list[bool] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def list_user_repositories(self, *, include_private: bool, page: int, per_page: int):
        self.include_private.append(include_private)
        if self.status != 200:
            return FetchResult(state=FetchState.FAILED, status_code=self.status, error="Bad credentials")
        if page > 1 or not self.repositories:
            return FetchResult(state=FetchState.EMPTY, data=[], status_code=200)
        return FetchResult(state=FetchState.OK, data=self.repositories, status_code=200)

    async def get_last_commit_date(self, owner: str, repo: str, branch: str = "main"):
        if repo in self.failing:
            raise ConnectionError("network error")
        return FetchResult(state=FetchState.OK, data="2025-01-01T00:00:00Z", status_code=200)


def _job(session_factory, client: FakeGitHubClient) -> ScanJob:
    orchestrator = RepositoryScanOrchestrator(github_client_factory=lambda _token: client)
    return ScanJob(session_factory=session_factory, orchestrator=orchestrator)


def _start(db, account_id: int) -> str:
    record = ScanLedger(db).start(account_id)
    db.commit()
    return record.id


def test_item_failure_still_completes_scan(db, session_factory, account, repo_payload) -> None:
    scan_id = _start(db, account.id)
    client = FakeGitHubClient([repo_payload(1, "healthy"), repo_payload(2, "flaky")], failing={"flaky"})

    result = asyncio.run(_job(session_factory, client).run(scan_id, account.id))

    db.expire_all()
    record = db.get(ScanRecord, scan_id)
    assert result["success"] is True
    assert record.status == ScanStatus.COMPLETED
    assert record.repos_scanned == 1
    assert record.repos_added == 1
    assert record.errors_count == 1
    assert {row.github_id for row in db.query(Repository).filter_by(account_id=account.id)} == {1}


def test_failed_item_keeps_previously_stored_row(db, session_factory, account, repo_payload, scanned) -> None:
    RepositoryStore(db).upsert(account.id, [scanned(1), scanned(2), scanned(3)])
    db.commit()
    scan_id = _start(db, account.id)
    client = FakeGitHubClient([repo_payload(1, "one"), repo_payload(2, "two")], failing={"two"})

    result = asyncio.run(_job(session_factory, client).run(scan_id, account.id))

    db.expire_all()
    assert result["stats"]["deleted"] == 1
    assert result["stats"]["updated"] == 1
    assert {row.github_id for row in db.query(Repository).filter_by(account_id=account.id)} == {1, 2}


def test_empty_listing_removes_all_stored_repositories(db, session_factory, account, scanned) -> None:
    RepositoryStore(db).upsert(account.id, [scanned(1), scanned(2)])
    db.commit()
    scan_id = _start(db, account.id)

    result = asyncio.run(_job(session_factory, FakeGitHubClient([])).run(scan_id, account.id))

    db.expire_all()
    assert result["stats"]["deleted"] == 2
    assert db.query(Repository).filter_by(account_id=account.id).count() == 0
    assert db.get(ScanRecord, scan_id).status == ScanStatus.COMPLETED


def test_whole_scan_failure_marks_scan_failed_and_keeps_data(db, session_factory, account, scanned) -> None:
    RepositoryStore(db).upsert(account.id, [scanned(1)])
    db.commit()
    scan_id = _start(db, account.id)

    result = asyncio.run(_job(session_factory, FakeGitHubClient([], status=401)).run(scan_id, account.id))

    db.expire_all()
    record = db.get(ScanRecord, scan_id)
    assert result["success"] is False
    assert record.status == ScanStatus.FAILED
    assert record.errors_count == 1
    assert record.error_details["type"] == GitHubAuthError.__name__
    assert db.query(Repository).filter_by(account_id=account.id).count() == 1


def test_private_repository_flag_follows_account_config(db, session_factory, account) -> None:
    from stalerepos.services.account_config import update_account_config

    update_account_config(db, account.id, {"scan_private_repos": True})
    scan_id = _start(db, account.id)
    client = FakeGitHubClient([])

    asyncio.run(_job(session_factory, client).run(scan_id, account.id))

    assert client.include_private == [True]


@pytest.mark.asyncio
async def test_second_start_conflicts_without_new_record(db, session_factory, account) -> None:
    registry = ScanTaskRegistry()
    release = asyncio.Event()

    class BlockingJob:
        def __init__(self) -> None:
            self.calls = 0

        async def run(self, scan_id, account_id, *, on_status=None, on_progress=None):
            self.calls += 1
            on_status("analyzing", {"message": "Analyzing 2 repositories...", "total": 2})
            on_progress(1, 2)
            await release.wait()
            return {"success": True}

    job = BlockingJob()
    first = start_scan(db, account.id, registry=registry, job=job)
    await asyncio.sleep(0)
    second = start_scan(db, account.id, registry=registry, job=job)

    assert first.started is True
    assert second.conflict is True
    assert second.scan_id == first.scan_id
    assert db.query(ScanRecord).filter_by(account_id=account.id).count() == 1

    status = get_scan_status(db, first.scan_id, account.id, registry=registry)
    assert status["status"] == "running"
    assert status["progress"] == {"status": "analyzing", "processed": 1, "total": 2, "message": "Analyzing 2 repositories..."}

    release.set()
    await registry.wait(first.scan_id)
    await asyncio.sleep(0)
    assert job.calls == 1
    assert registry.get(first.scan_id) is None


@pytest.mark.asyncio
async def test_cancelled_scan_is_recorded_as_failed(db, session_factory, account) -> None:
    registry = ScanTaskRegistry()
    started = asyncio.Event()

    class HangingOrchestrator(RepositoryScanOrchestrator):
        async def perform_repository_scan(self, *args, **kwargs):
            started.set()
            await asyncio.Event().wait()

    job = ScanJob(session_factory=session_factory, orchestrator=HangingOrchestrator())
    result = start_scan(db, account.id, registry=registry, job=job)
    await started.wait()

    await registry.shutdown()

    db.expire_all()
    record = db.get(ScanRecord, result.scan_id)
    assert record.status == ScanStatus.FAILED
    assert record.error_details["message"] == "Scan cancelled"


def test_rolled_back_writes_are_not_counted_on_failure(db, session_factory, account, repo_payload, monkeypatch) -> None:
    scan_id = _start(db, account.id)

    def broken_delete(self, account_id, keep_github_ids):
        raise RuntimeError("delete failed")

    monkeypatch.setattr(RepositoryStore, "delete_stale_excluding", broken_delete)
    client = FakeGitHubClient([repo_payload(1, "one"), repo_payload(2, "two")])

    result = asyncio.run(_job(session_factory, client).run(scan_id, account.id))

    db.expire_all()
    record = db.get(ScanRecord, scan_id)
    assert result["success"] is False
    assert result["stats"] == {"scanned": 2, "added": 0, "updated": 0}
    assert record.status == ScanStatus.FAILED
    assert record.repos_scanned == 2
    assert record.repos_added == 0
    assert record.repos_updated == 0
    assert db.query(Repository).filter_by(account_id=account.id).count() == 0


def test_terminal_status_is_reported_after_ledger_commit(session_factory, db, account, repo_payload) -> None:
    scan_id = _start(db, account.id)
    seen: list[tuple[str, str]] = []

    def on_status(status: str, payload: dict[str, Any]) -> None:
        check = session_factory()
        try:
            seen.append((status, check.get(ScanRecord, scan_id).status))
        finally:
            check.close()

    client = FakeGitHubClient([repo_payload(1, "one")])
    asyncio.run(_job(session_factory, client).run(scan_id, account.id, on_status=on_status))

    assert [status for status, _ in seen] == ["fetching", "analyzing", "completed"]
    assert seen[-1][1] == ScanStatus.COMPLETED
    assert all(stored == ScanStatus.RUNNING for _, stored in seen[:-1])


def test_failure_status_is_reported_after_ledger_commit(session_factory, db, account) -> None:
    scan_id = _start(db, account.id)
    seen: list[tuple[str, str]] = []

    def on_status(status: str, payload: dict[str, Any]) -> None:
        check = session_factory()
        try:
            seen.append((status, check.get(ScanRecord, scan_id).status))
        finally:
            check.close()

    asyncio.run(_job(session_factory, FakeGitHubClient([], status=401)).run(scan_id, account.id, on_status=on_status))

    assert seen == [("fetching", ScanStatus.RUNNING), ("error", ScanStatus.FAILED)]


def test_empty_listing_reports_no_repositories_found(session_factory, db, account) -> None:
    scan_id = _start(db, account.id)
    payloads: list[dict[str, Any]] = []

    asyncio.run(
        _job(session_factory, FakeGitHubClient([])).run(
            scan_id, account.id, on_status=lambda _status, payload: payloads.append(payload)
        )
    )

    assert payloads[-1] == {"message": "No repositories found", "total": 0}


@pytest.mark.asyncio
async def test_orphaned_running_scan_no_longer_blocks_trigger(db, account) -> None:
    registry = ScanTaskRegistry()
    orphan = ScanLedger(db).start(account.id)
    orphan.scan_started_at = datetime.now(UTC) - timedelta(hours=2)
    db.commit()

    class QuickJob:
        async def run(self, scan_id, account_id, *, on_status=None, on_progress=None):
            return {"success": True}

    result = start_scan(db, account.id, registry=registry, job=QuickJob())
    await registry.wait(result.scan_id)

    db.expire_all()
    assert result.started is True
    assert result.scan_id != orphan.id
    assert db.get(ScanRecord, orphan.id).status == ScanStatus.FAILED


def test_recent_running_scan_without_task_still_conflicts(db, account) -> None:
    running = ScanLedger(db).start(account.id)
    db.commit()

    result = start_scan(db, account.id, registry=ScanTaskRegistry(), job=object())

    assert result.conflict is True
    assert result.scan_id == running.id


def test_recover_interrupted_scans_fails_every_running_record(db, account) -> None:
    first = _start(db, account.id)
    finished = _start(db, account.id)
    ScanLedger(db).complete(finished, scanned=0, added=0, updated=0)
    db.commit()

    recovered = recover_interrupted_scans(db)

    db.expire_all()
    assert recovered == [first]
    assert db.get(ScanRecord, first).error_details["message"] == "Scan interrupted by restart"
    assert db.get(ScanRecord, finished).status == ScanStatus.COMPLETED
