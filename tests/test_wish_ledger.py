from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from birthday_tracker.errors import (
    CONFLICT_ALREADY_SENT,
    InfrastructureError,
    RecordNotFoundError,
    WishConflictError,
)
from birthday_tracker.record_store import RecordStore, new_record
from birthday_tracker.wish_ledger import WishLedger, is_eligible

TZ = ZoneInfo("Europe/London")


def _setup(tmp_path: Path, last_wish_sent: datetime | None = None):
    store = RecordStore(tmp_path / "records.json")
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))
    if last_wish_sent is not None:
        store.update_if(record.id, "100", lambda current: True, last_wish_sent)
    return store, WishLedger(store), record


def test_first_send_succeeds_and_persists(tmp_path: Path) -> None:
    store, ledger, record = _setup(tmp_path)
    now = datetime(2026, 3, 14, 9, 0, tzinfo=TZ)

    receipt = ledger.attempt_send("100", record.id, now)

    assert receipt.sent_at == now
    assert store.get_record("100", record.id).last_wish_sent == now


def test_second_send_same_year_conflicts(tmp_path: Path) -> None:
    _store, ledger, record = _setup(tmp_path)
    first = datetime(2026, 3, 14, 9, 0, tzinfo=TZ)
    ledger.attempt_send("100", record.id, first)

    with pytest.raises(WishConflictError) as excinfo:
        ledger.attempt_send("100", record.id, datetime(2026, 12, 31, 23, 0, tzinfo=TZ))

    assert excinfo.value.last_sent == first
    assert excinfo.value.available_year == 2027
    assert excinfo.value.reason == CONFLICT_ALREADY_SENT


def test_conflict_reports_existing_timestamp(tmp_path: Path) -> None:
    last_sent = datetime(2025, 3, 1, 12, 0, tzinfo=TZ)
    _store, ledger, record = _setup(tmp_path, last_wish_sent=last_sent)

    with pytest.raises(WishConflictError) as excinfo:
        ledger.attempt_send("100", record.id, datetime(2025, 11, 3, 8, 0, tzinfo=TZ))

    assert excinfo.value.last_sent == last_sent


def test_send_allowed_again_next_year(tmp_path: Path) -> None:
    store, ledger, record = _setup(tmp_path, last_wish_sent=datetime(2025, 3, 1, 12, 0, tzinfo=TZ))
    now = datetime(2026, 1, 2, 10, 0, tzinfo=TZ)

    receipt = ledger.attempt_send("100", record.id, now)

    assert receipt.sent_at == now
    assert store.get_record("100", record.id).last_wish_sent == now


def test_year_is_read_in_reference_zone() -> None:
    record = new_record("100", "Alice", date(1990, 3, 14))
    # 04:30 UTC on Jan 1 is still Dec 31 in New York.
    sent = replace(record, last_wish_sent=datetime(2026, 1, 1, 4, 30, tzinfo=timezone.utc))
    new_york = ZoneInfo("America/New_York")

    assert is_eligible(sent, datetime(2025, 12, 31, 23, 45, tzinfo=new_york)) is False
    assert is_eligible(sent, datetime(2026, 6, 1, tzinfo=new_york)) is True
    assert is_eligible(sent, datetime(2026, 6, 1, tzinfo=timezone.utc)) is False
    assert is_eligible(record, datetime(2026, 6, 1, tzinfo=TZ)) is True


def test_other_owner_gets_not_found(tmp_path: Path) -> None:
    store, ledger, record = _setup(tmp_path)

    with pytest.raises(RecordNotFoundError):
        ledger.attempt_send("200", record.id, datetime(2026, 3, 14, tzinfo=TZ))
    assert store.get_record("100", record.id).last_wish_sent is None


def test_unknown_record_gets_not_found(tmp_path: Path) -> None:
    _store, ledger, _record = _setup(tmp_path)

    with pytest.raises(RecordNotFoundError):
        ledger.attempt_send("100", "missing", datetime(2026, 3, 14, tzinfo=TZ))


def test_store_failure_propagates(tmp_path: Path) -> None:
    store, ledger, record = _setup(tmp_path)
    (tmp_path / "records.json").write_text("[]", encoding="utf-8")

    with pytest.raises(InfrastructureError):
        ledger.attempt_send("100", record.id, datetime(2026, 3, 14, tzinfo=TZ))


class StaleReadStore(RecordStore):
    """Serves the snapshot taken before another send landed."""

    def __init__(self, path: Path, snapshot) -> None:
        super().__init__(path)
        self._snapshot = snapshot

    def get_record(self, owner_id: str, record_id: str):
        return self._snapshot


def test_conditional_write_catches_send_that_landed_after_the_read(tmp_path: Path) -> None:
    store, ledger, record = _setup(tmp_path)
    now = datetime(2026, 3, 14, 9, 0, tzinfo=TZ)
    ledger.attempt_send("100", record.id, now)

    stale_ledger = WishLedger(StaleReadStore(tmp_path / "records.json", record))
    with pytest.raises(WishConflictError) as excinfo:
        stale_ledger.attempt_send("100", record.id, now)

    assert excinfo.value.last_sent == now


def test_concurrent_sends_accept_exactly_one(tmp_path: Path) -> None:
    _store, ledger, record = _setup(tmp_path)
    now = datetime(2026, 3, 14, 9, 0, tzinfo=TZ)
    workers = 8
    barrier = threading.Barrier(workers)

    def attempt(_index: int) -> str:
        barrier.wait()
        try:
            ledger.attempt_send("100", record.id, now)
        except WishConflictError:
            return "conflict"
        return "sent"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(attempt, range(workers)))

    assert outcomes.count("sent") == 1
    assert outcomes.count("conflict") == workers - 1
