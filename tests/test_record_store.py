from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from birthday_tracker.errors import InfrastructureError, RecordNotFoundError, ValidationError
from birthday_tracker.record_store import RecordStore, new_record


def _store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "records.json")


def test_add_and_list_are_owner_scoped(tmp_path: Path) -> None:
    store = _store(tmp_path)
    mine = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))
    store.add_record(new_record("200", "Mallory", date(1991, 4, 1)))

    assert store.list_records("100") == [mine]
    assert [record.name for record in store.list_records("200")] == ["Mallory"]
    assert store.list_records("300") == []


def test_list_records_sorted_by_stored_date(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_record(new_record("100", "Late", date(2001, 1, 1)))
    store.add_record(new_record("100", "Early", date(1980, 6, 1)))

    assert [record.name for record in store.list_records("100")] == ["Early", "Late"]


def test_get_record_hides_other_owners(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))

    assert store.get_record("100", record.id) == record
    with pytest.raises(RecordNotFoundError):
        store.get_record("200", record.id)
    with pytest.raises(RecordNotFoundError):
        store.get_record("100", "missing")


def test_records_survive_reload(tmp_path: Path) -> None:
    sent_at = datetime(2026, 1, 2, 10, 0, tzinfo=timezone.utc)
    record = new_record("100", "Alice", date(1990, 3, 14), email="Alice@Example.com", notes="cake")
    first = _store(tmp_path)
    first.add_record(record)
    first.update_if(record.id, "100", lambda current: True, sent_at)

    loaded = _store(tmp_path).get_record("100", record.id)

    assert loaded.email == "alice@example.com"
    assert loaded.notes == "cake"
    assert loaded.last_wish_sent == sent_at


def test_update_details_keeps_last_wish_sent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))
    sent_at = datetime(2026, 3, 14, tzinfo=timezone.utc)
    store.update_if(record.id, "100", lambda current: True, sent_at)

    updated = store.update_details("100", record.id, name="Alicia", occurs_on=date(1990, 3, 15))

    assert updated.name == "Alicia"
    assert updated.occurs_on == date(1990, 3, 15)
    assert updated.last_wish_sent == sent_at


def test_update_details_rejects_other_owner(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))

    with pytest.raises(RecordNotFoundError):
        store.update_details("200", record.id, name="Hijacked", occurs_on=date(1990, 3, 14))
    assert store.get_record("100", record.id).name == "Alice"


def test_delete_record(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))

    with pytest.raises(RecordNotFoundError):
        store.delete_record("200", record.id)

    store.delete_record("100", record.id)
    assert store.list_records("100") == []


def test_update_if_applies_only_when_predicate_holds(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = store.add_record(new_record("100", "Alice", date(1990, 3, 14)))
    sent_at = datetime(2026, 3, 14, tzinfo=timezone.utc)

    rejected = store.update_if(record.id, "100", lambda current: False, sent_at)
    applied = store.update_if(record.id, "100", lambda current: current.last_wish_sent is None, sent_at)
    again = store.update_if(record.id, "100", lambda current: current.last_wish_sent is None, sent_at)

    assert rejected.applied is False
    assert rejected.record.last_wish_sent is None
    assert applied.applied is True
    assert applied.record.last_wish_sent == sent_at
    assert again.applied is False
    assert again.record.last_wish_sent == sent_at


def test_update_if_missing_record_is_not_found(tmp_path: Path) -> None:
    with pytest.raises(RecordNotFoundError):
        _store(tmp_path).update_if("missing", "100", lambda current: True, datetime.now(timezone.utc))


def test_corrupt_store_raises_infrastructure_error(tmp_path: Path) -> None:
    path = tmp_path / "records.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InfrastructureError):
        RecordStore(path).list_records("100")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "A"},
        {"name": "x" * 101},
        {"name": "Alice", "email": "not-an-email"},
        {"name": "Alice", "notes": "n" * 501},
    ],
)
def test_new_record_validation(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        new_record("100", occurs_on=date(1990, 3, 14), **kwargs)


def test_new_record_trims_and_assigns_id() -> None:
    record = new_record("100", "  Alice  ", date(1990, 3, 14), phone="  ", notes=" hi ")

    assert record.name == "Alice"
    assert record.phone is None
    assert record.notes == "hi"
    assert len(record.id) == 36
    assert record.last_wish_sent is None
