"""Typed response contracts for the GitHub client."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

NOT_FOUND_STATUSES = frozenset({404, 409})


class FetchState(str, enum.Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """Outcome of one GitHub request; failures are values, not exceptions."""

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    headers: Optional[dict[str, str]] = None

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_empty(self) -> bool:
        return self.state == FetchState.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED

    @property
    def is_not_found(self) -> bool:
        """404/409: missing repository, missing branch or empty repository."""
        return self.is_failed and self.status_code in NOT_FOUND_STATUSES

    @property
    def is_unauthorized(self) -> bool:
        return self.is_failed and self.status_code == 401


RepoListContract = FetchResult[list[dict[str, Any]]]
CommitListContract = FetchResult[list[dict[str, Any]]]
UserContract = FetchResult[dict[str, Any]]
