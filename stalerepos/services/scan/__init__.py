"""Repository scan workflow: classification, reconciliation and the scan ledger."""

from stalerepos.services.scan.classifier import abandonment_cutoff, is_record_abandoned, is_repository_abandoned
from stalerepos.services.scan.report import ItemOutcome, ItemResult, ScannedRepository, ScanReport
from stalerepos.services.scan.repository_store import RepositoryStore, UpsertResult
from stalerepos.services.scan.scan_ledger import ScanLedger

__all__ = [
    "abandonment_cutoff",
    "is_record_abandoned",
    "is_repository_abandoned",
    "ItemOutcome",
    "ItemResult",
    "ScannedRepository",
    "ScanReport",
    "RepositoryStore",
    "UpsertResult",
    "ScanLedger",
]
