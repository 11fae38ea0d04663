"""Per-item results and the aggregated report of one scan."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class ItemOutcome(str, enum.Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"  # archived: commit lookup not needed
    FAILED = "failed"


@dataclass(slots=True)
class ScannedRepository:
    """Repository metadata enriched with its last commit date."""

    github_id: int
    name: str
    full_name: str
    html_url: str
    description: Optional[str] = None
    private: bool = False
    clone_url: Optional[str] = None
    last_commit_date: Optional[datetime] = None
    last_push_date: Optional[datetime] = None
    is_fork: bool = False
    is_archived: bool = False
    default_branch: str = "main"
    language: Optional[str] = None
    stars_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    size_kb: int = 0


@dataclass(slots=True)
class ItemResult:
    github_id: Optional[int]
    full_name: str
    outcome: ItemOutcome
    repository: Optional[ScannedRepository] = None
    error: Optional[str] = None


@dataclass(slots=True)
class ScanReport:
    """Everything a scan produced; whole-scan failures raise instead."""

    username: str
    total: int = 0
    results: list[ItemResult] = field(default_factory=list)

    @property
    def repositories(self) -> list[ScannedRepository]:
        return [result.repository for result in self.results if result.repository is not None]

    @property
    def fetched_github_ids(self) -> list[int]:
        """Ids of every listed repository, enriched or not."""
        return [result.github_id for result in self.results if result.github_id is not None]

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.outcome == ItemOutcome.SUCCESS)

    @property
    def skipped(self) -> int:
        return sum(1 for result in self.results if result.outcome == ItemOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if result.outcome == ItemOutcome.FAILED)

    def summary(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "total": self.total,
            "enriched": len(self.repositories),
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [
                {"full_name": result.full_name, "error": result.error}
                for result in self.results
                if result.outcome == ItemOutcome.FAILED
            ],
        }
