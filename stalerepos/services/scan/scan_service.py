"""Scan trigger and status reads used by the HTTP layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from stalerepos.config.settings import settings
from stalerepos.models.scan import ScanRecord
from stalerepos.services.scan.scan_ledger import ScanLedger

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Scan interrupted by restart"
ORPHANED_MESSAGE = "Scan abandoned without a running task"


@dataclass(slots=True)
class ScanStartResult:
    scan_id: str
    started: bool

    @property
    def conflict(self) -> bool:
        return not self.started


def start_scan(db: Any, account_id: int, *, registry: Any, job: Any) -> ScanStartResult:
    """Create a running ledger record and hand the scan to the registry.

    Returns the existing scan id instead when the account already has a
    running scan. The check is read-then-write: two concurrent triggers can
    both pass it. A running record with no live task that is older than
    `SCAN_STALE_AFTER_MINUTES` is failed first and no longer blocks.
    """

    ledger = ScanLedger(db)
    running = ledger.get_running(account_id)
    if running is not None and registry.get(running.id) is None and _is_stale(running):
        ledger.fail(running.id, ORPHANED_MESSAGE)
        db.commit()
        logger.warning("Failed orphaned scan", extra={"scan_id": running.id, "account_id": account_id})
        running = None
    if running is not None:
        logger.info("Scan already running", extra={"scan_id": running.id, "account_id": account_id})
        return ScanStartResult(scan_id=running.id, started=False)

    record = ledger.start(account_id)
    scan_id = record.id
    db.commit()

    registry.spawn(
        scan_id,
        lambda on_status, on_progress: job.run(scan_id, account_id, on_status=on_status, on_progress=on_progress),
    )
    return ScanStartResult(scan_id=scan_id, started=True)


def get_scan_status(db: Any, scan_id: str, account_id: int, *, registry: Any = None) -> dict[str, Any]:
    """Ledger record for the account, plus live progress while the task runs."""

    record = ScanLedger(db).get_for_account(scan_id, account_id)
    payload = record.to_dict()
    progress = registry.progress(scan_id) if registry is not None and not record.is_terminal else None
    payload["progress"] = progress.to_dict() if progress is not None else None
    return payload


def get_scan_history(db: Any, account_id: int, limit: int | None = None) -> list[dict[str, Any]]:
    return [record.to_dict() for record in ScanLedger(db).history(account_id, limit)]


def recover_interrupted_scans(db: Any) -> list[str]:
    """Fail every running scan left behind by a previous process."""

    ledger = ScanLedger(db)
    scan_ids = [ledger.fail(record.id, INTERRUPTED_MESSAGE).id for record in ledger.list_running()]
    db.commit()
    if scan_ids:
        logger.warning("Failed scans interrupted by restart", extra={"count": len(scan_ids)})
    return scan_ids


def _is_stale(record: ScanRecord, now: Optional[datetime] = None) -> bool:
    started = record.scan_started_at
    if started.tzinfo is None:
        started = started.replace(tzinfo=UTC)
    return (now or datetime.now(UTC)) - started > timedelta(minutes=settings.SCAN_STALE_AFTER_MINUTES)
