from __future__ import annotations

import pytest

from stalerepos.exceptions import ScanNotFoundError, ScanStateError
from stalerepos.models.account import Account
from stalerepos.models.scan import ScanStatus
from stalerepos.services.scan.scan_ledger import ScanLedger


def test_start_creates_running_record(db, account) -> None:
    ledger = ScanLedger(db)

    record = ledger.start(account.id)
    db.commit()

    assert record.status == ScanStatus.RUNNING
    assert len(record.id) == 36
    assert ledger.get_running(account.id).id == record.id


def test_complete_stamps_counts_and_completion(db, account) -> None:
    ledger = ScanLedger(db)
    record = ledger.start(account.id)

    ledger.complete(record.id, scanned=5, added=2, updated=3, errors=1)
    db.commit()

    stored = ledger.get(record.id)
    assert stored.status == ScanStatus.COMPLETED
    assert (stored.repos_scanned, stored.repos_added, stored.repos_updated, stored.errors_count) == (5, 2, 3, 1)
    assert stored.scan_completed_at is not None
    assert ledger.get_running(account.id) is None


def test_fail_records_structured_error_and_partial_counts(db, account) -> None:
    ledger = ScanLedger(db)
    record = ledger.start(account.id)

    try:
        raise RuntimeError("GitHub unreachable")
    except RuntimeError as exc:
        ledger.fail(record.id, exc, partial_counts={"scanned": 4, "added": 1})
    db.commit()

    stored = ledger.get(record.id)
    assert stored.status == ScanStatus.FAILED
    assert stored.errors_count == 1
    assert stored.repos_scanned == 4
    assert stored.repos_added == 1
    assert stored.error_details["message"] == "GitHub unreachable"
    assert stored.error_details["type"] == "RuntimeError"
    assert "Traceback" in stored.error_details["trace"]
    assert stored.error_details["timestamp"]


@pytest.mark.parametrize("terminal", ["complete", "fail"])
def test_terminal_scan_cannot_transition_again(db, account, terminal) -> None:
    ledger = ScanLedger(db)
    record = ledger.start(account.id)
    if terminal == "complete":
        ledger.complete(record.id, scanned=0, added=0, updated=0)
    else:
        ledger.fail(record.id, "boom")

    with pytest.raises(ScanStateError):
        ledger.complete(record.id, scanned=1, added=1, updated=0)
    with pytest.raises(ScanStateError):
        ledger.fail(record.id, "again")


def test_unknown_scan_raises_not_found(db, account) -> None:
    ledger = ScanLedger(db)

    with pytest.raises(ScanNotFoundError):
        ledger.get("00000000-0000-0000-0000-000000000000")
    with pytest.raises(ScanNotFoundError):
        ledger.complete("missing", scanned=0, added=0, updated=0)


def test_scan_lookup_is_scoped_to_owner(db, account) -> None:
    other = Account(username="hubot", access_token="gho_other")
    db.add(other)
    db.commit()
    ledger = ScanLedger(db)
    record = ledger.start(account.id)
    db.commit()

    assert ledger.get_for_account(record.id, account.id).id == record.id
    with pytest.raises(ScanNotFoundError):
        ledger.get_for_account(record.id, other.id)


def test_history_is_newest_first_and_limited(db, account) -> None:
    ledger = ScanLedger(db)
    ids = []
    for _ in range(3):
        record = ledger.start(account.id)
        ledger.complete(record.id, scanned=0, added=0, updated=0)
        ids.append(record.id)
    db.commit()

    history = ledger.history(account.id, limit=2)

    assert len(history) == 2
    assert ledger.latest(account.id).id in ids


def test_list_running_spans_accounts_and_skips_terminal(db, account) -> None:
    other = Account(username="hubot", access_token="gho_other")
    db.add(other)
    db.commit()
    ledger = ScanLedger(db)
    mine = ledger.start(account.id)
    theirs = ledger.start(other.id)
    done = ledger.start(account.id)
    ledger.fail(done.id, "boom")
    db.commit()

    assert {record.id for record in ledger.list_running()} == {mine.id, theirs.id}
