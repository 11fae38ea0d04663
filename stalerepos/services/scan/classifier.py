"""Abandonment policy for scanned repositories."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

Timestamp = Union[datetime, str, None]


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Coerce GitHub ISO-8601 strings and naive datetimes into aware UTC datetimes."""

    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        value = date_parser.isoparse(value.strip())
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def abandonment_cutoff(threshold_months: int, now: Optional[datetime] = None) -> datetime:
    """Calendar-month cutoff; day-of-month is clamped (Mar 31 - 1 month = Feb 28/29)."""

    if isinstance(threshold_months, bool) or not isinstance(threshold_months, int) or threshold_months < 1:
        raise ValueError(f"threshold_months must be a positive integer, got {threshold_months!r}")
    reference = parse_timestamp(now) or datetime.now(UTC)
    return reference - relativedelta(months=threshold_months)


def last_activity(last_commit_date: Timestamp, last_push_date: Timestamp) -> Optional[datetime]:
    """Commit date when known, push date otherwise."""

    return parse_timestamp(last_commit_date) or parse_timestamp(last_push_date)


def is_repository_abandoned(
    *,
    archived: bool,
    last_commit_date: Timestamp,
    last_push_date: Timestamp,
    threshold_months: int,
    now: Optional[datetime] = None,
) -> bool:
    """Archived repositories are never abandoned; no activity at all always is."""

    cutoff = abandonment_cutoff(threshold_months, now)
    if archived:
        return False

    activity = last_activity(last_commit_date, last_push_date)
    if activity is None:
        return True
    return activity < cutoff


def is_record_abandoned(record, threshold_months: int, now: Optional[datetime] = None) -> bool:
    """Classify a stored repository row or an enriched scan entry."""

    return is_repository_abandoned(
        archived=bool(getattr(record, "is_archived", False)),
        last_commit_date=getattr(record, "last_commit_date", None),
        last_push_date=getattr(record, "last_push_date", None),
        threshold_months=threshold_months,
        now=now,
    )
