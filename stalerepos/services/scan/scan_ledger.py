"""Scan lifecycle records: running -> completed | failed, exactly once."""

from __future__ import annotations

import logging
import traceback
from datetime import UTC, datetime
from typing import Any, Optional

from stalerepos.config.settings import settings
from stalerepos.exceptions import ScanNotFoundError, ScanStateError
from stalerepos.models.scan import ScanRecord, ScanStatus

logger = logging.getLogger(__name__)


class ScanLedger:
    """Reads and transitions `scan_history` rows. Callers own the transaction."""

    def __init__(self, db: Any) -> None:
        self.db = db

    def start(self, account_id: int) -> ScanRecord:
        record = ScanRecord(account_id=account_id, status=ScanStatus.RUNNING, scan_started_at=datetime.now(UTC))
        self.db.add(record)
        self.db.flush()
        logger.info("Scan started", extra={"scan_id": record.id, "account_id": account_id})
        return record

    def get(self, scan_id: str) -> ScanRecord:
        record = self.db.get(ScanRecord, scan_id)
        if record is None:
            raise ScanNotFoundError(f"Scan {scan_id} not found")
        return record

    def get_for_account(self, scan_id: str, account_id: int) -> ScanRecord:
        """Scan scoped to its owner; other accounts' scans look missing."""
        record = self.db.get(ScanRecord, scan_id)
        if record is None or record.account_id != account_id:
            raise ScanNotFoundError(f"Scan {scan_id} not found")
        return record

    def get_running(self, account_id: int) -> Optional[ScanRecord]:
        return (
            self.db.query(ScanRecord)
            .filter(ScanRecord.account_id == account_id, ScanRecord.status == ScanStatus.RUNNING)
            .order_by(ScanRecord.scan_started_at.desc())
            .first()
        )

    def list_running(self) -> list[ScanRecord]:
        return self.db.query(ScanRecord).filter(ScanRecord.status == ScanStatus.RUNNING).all()

    def history(self, account_id: int, limit: Optional[int] = None) -> list[ScanRecord]:
        return (
            self.db.query(ScanRecord)
            .filter(ScanRecord.account_id == account_id)
            .order_by(ScanRecord.created_at.desc())
            .limit(limit or settings.SCAN_HISTORY_LIMIT)
            .all()
        )

    def latest(self, account_id: int) -> Optional[ScanRecord]:
        records = self.history(account_id, limit=1)
        return records[0] if records else None

    def complete(self, scan_id: str, *, scanned: int, added: int, updated: int, errors: int = 0) -> ScanRecord:
        record = self._running(scan_id)
        record.status = ScanStatus.COMPLETED
        record.scan_completed_at = datetime.now(UTC)
        record.repos_scanned = scanned
        record.repos_added = added
        record.repos_updated = updated
        record.errors_count = errors
        self.db.flush()
        logger.info(
            "Scan completed",
            extra={"scan_id": scan_id, "scanned": scanned, "added": added, "updated": updated, "errors": errors},
        )
        return record

    def fail(
        self,
        scan_id: str,
        error: BaseException | str,
        partial_counts: Optional[dict[str, int]] = None,
    ) -> ScanRecord:
        """Mark the scan failed with `{message, type, trace, timestamp}` details."""

        record = self._running(scan_id)
        counts = partial_counts or {}
        completed_at = datetime.now(UTC)

        record.status = ScanStatus.FAILED
        record.scan_completed_at = completed_at
        record.repos_scanned = int(counts.get("scanned", record.repos_scanned or 0))
        record.repos_added = int(counts.get("added", record.repos_added or 0))
        record.repos_updated = int(counts.get("updated", record.repos_updated or 0))
        record.errors_count = int(counts.get("errors", 1))
        record.error_details = _error_details(error, completed_at)
        self.db.flush()
        logger.error(
            "Scan failed",
            extra={"scan_id": scan_id, "error": record.error_details["message"], "error_type": record.error_details["type"]},
        )
        return record

    def _running(self, scan_id: str) -> ScanRecord:
        record = self.get(scan_id)
        if record.is_terminal:
            raise ScanStateError(scan_id, ScanStatus(record.status).value)
        return record


def _error_details(error: BaseException | str, timestamp: datetime) -> dict[str, Optional[str]]:
    if isinstance(error, BaseException):
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__)) or None
        return {
            "message": str(error) or type(error).__name__,
            "type": type(error).__name__,
            "trace": trace,
            "timestamp": timestamp.isoformat(),
        }
    return {"message": str(error), "type": None, "trace": None, "timestamp": timestamp.isoformat()}
