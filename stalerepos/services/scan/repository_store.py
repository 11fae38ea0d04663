"""Repository reconciliation: upsert by (account, github id) and delete-not-in-set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import nulls_last

from stalerepos.models.repository import Repository
from stalerepos.services.scan.classifier import is_record_abandoned
from stalerepos.services.scan.report import ScannedRepository
from stalerepos.services.scan.repository_mapper import map_scanned_to_row

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UpsertResult:
    records: list[Repository] = field(default_factory=list)
    created: int = 0
    updated: int = 0


class RepositoryStore:
    """Persists one account's repository snapshot. Callers own the transaction."""

    def __init__(self, db: Any) -> None:
        self.db = db

    def upsert(
        self,
        account_id: int,
        items: Sequence[ScannedRepository],
        *,
        scanned_at: Optional[datetime] = None,
    ) -> UpsertResult:
        """Insert new rows or overwrite every mutable column of existing ones."""

        result = UpsertResult()
        if not items:
            return result

        stamp = scanned_at or datetime.now(UTC)
        github_ids = sorted({item.github_id for item in items})
        existing = {
            row.github_id: row
            for row in self.db.query(Repository)
            .filter(Repository.account_id == account_id, Repository.github_id.in_(github_ids))
            .all()
        }

        seen: set[int] = set()
        for item in items:
            values = map_scanned_to_row(item, scanned_at=stamp)
            row = existing.get(item.github_id)
            if row is None:
                row = Repository(account_id=account_id, github_id=item.github_id, created_at=stamp, **values)
                self.db.add(row)
                existing[item.github_id] = row
                result.created += 1
            else:
                for field_name, value in values.items():
                    setattr(row, field_name, value)
                if item.github_id not in seen:
                    result.updated += 1

            # Duplicate ids in one batch collapse onto a single row; last one wins.
            if item.github_id not in seen:
                seen.add(item.github_id)
                result.records.append(row)

        self.db.flush()
        logger.debug(
            "Upserted repositories",
            extra={"account_id": account_id, "rows_created": result.created, "rows_updated": result.updated},
        )
        return result

    def delete_stale_excluding(self, account_id: int, keep_github_ids: Iterable[int]) -> int:
        """Delete the account's rows whose github id is not kept; an empty keep set deletes all."""

        keep = set(keep_github_ids)
        query = self.db.query(Repository).filter(Repository.account_id == account_id)
        if keep:
            query = query.filter(Repository.github_id.notin_(sorted(keep)))
        deleted = query.delete(synchronize_session="fetch")
        if deleted:
            logger.info("Deleted stale repositories", extra={"account_id": account_id, "deleted": deleted})
        return deleted

    def list_for_account(self, account_id: int) -> list[Repository]:
        return (
            self.db.query(Repository)
            .filter(Repository.account_id == account_id)
            .order_by(nulls_last(Repository.last_commit_date.desc()), Repository.full_name)
            .all()
        )

    def list_abandoned(self, account_id: int, threshold_months: int, *, now: Optional[datetime] = None) -> list[Repository]:
        return [
            row for row in self.list_for_account(account_id) if is_record_abandoned(row, threshold_months, now)
        ]

    def list_active(self, account_id: int, threshold_months: int, *, now: Optional[datetime] = None) -> list[Repository]:
        return [
            row for row in self.list_for_account(account_id) if not is_record_abandoned(row, threshold_months, now)
        ]
