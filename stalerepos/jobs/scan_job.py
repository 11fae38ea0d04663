"""Background scan job: orchestrate, reconcile, record the outcome exactly once."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from stalerepos.config.database import SessionLocal
from stalerepos.exceptions import ScanNotFoundError, ScanStateError
from stalerepos.github.client import sanitize_for_log
from stalerepos.orchestrator import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    ProgressCallback,
    RepositoryScanOrchestrator,
    StatusCallback,
    emit_status,
)
from stalerepos.services.account_config import get_account_config
from stalerepos.services.accounts import get_account
from stalerepos.services.scan.repository_store import RepositoryStore
from stalerepos.services.scan.scan_ledger import ScanLedger

logger = logging.getLogger(__name__)


class ScanJob:
    """Runs one ledger-tracked scan in its own database session."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], Any] = SessionLocal,
        orchestrator: Optional[RepositoryScanOrchestrator] = None,
    ) -> None:
        self._session_factory = session_factory
        self._orchestrator = orchestrator or RepositoryScanOrchestrator()

    async def run(
        self,
        scan_id: str,
        account_id: int,
        *,
        on_status: Optional[StatusCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """Return a stage-style result; whole-scan failures end in `ScanLedger.fail`.

        The terminal status callback fires only after the ledger row is committed.
        """

        # Only committed work is counted; a rollback leaves added/updated at zero.
        counts = {"scanned": 0, "added": 0, "updated": 0}
        db = self._session_factory()
        try:
            account = get_account(db, account_id)
            config = get_account_config(db, account_id)
            include_private = bool(config.scan_private_repos)
            access_token = account.access_token
            username = account.username
            db.commit()

            report = await self._orchestrator.perform_repository_scan(
                access_token,
                username,
                include_private,
                on_status=on_status,
                on_progress=on_progress,
            )
            counts["scanned"] = len(report.repositories)

            store = RepositoryStore(db)
            upserted = store.upsert(account_id, report.repositories)
            # Failed items keep their stored row; only ids GitHub no longer lists are removed.
            deleted = store.delete_stale_excluding(account_id, report.fetched_github_ids)

            ScanLedger(db).complete(
                scan_id,
                scanned=counts["scanned"],
                added=upserted.created,
                updated=upserted.updated,
                errors=report.failed,
            )
            db.commit()
            counts.update(added=upserted.created, updated=upserted.updated)

            if report.total:
                message = f"Analysis completed for {counts['scanned']} repositories"
            else:
                message = "No repositories found"
            emit_status(on_status, STATUS_COMPLETED, {"message": message, "total": counts["scanned"]})

            stats = {**counts, "deleted": deleted, "failed": report.failed, "skipped": report.skipped}
            logger.info("Scan job finished", extra={"scan_id": scan_id, "account_id": account_id, **stats})
            return {"success": True, "scan_id": scan_id, "stats": stats, "error": None}
        except asyncio.CancelledError:
            db.rollback()
            self._record_failure(db, scan_id, "Scan cancelled", counts)
            emit_status(on_status, STATUS_ERROR, {"message": "Scan cancelled"})
            raise
        except Exception as exc:
            db.rollback()
            logger.exception("Scan job failed", extra={"scan_id": scan_id, "account_id": account_id})
            self._record_failure(db, scan_id, exc, counts)
            error = sanitize_for_log(str(exc))
            emit_status(on_status, STATUS_ERROR, {"message": error})
            return {"success": False, "scan_id": scan_id, "stats": counts, "error": error}
        finally:
            db.close()

    @staticmethod
    def _record_failure(db: Any, scan_id: str, error: BaseException | str, counts: dict[str, int]) -> None:
        try:
            ScanLedger(db).fail(scan_id, error, partial_counts={**counts, "errors": 1})
            db.commit()
        except (ScanNotFoundError, ScanStateError):
            db.rollback()
            logger.warning("Scan missing or already terminal; failure not recorded", extra={"scan_id": scan_id})
