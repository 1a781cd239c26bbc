from datetime import date, datetime
from zoneinfo import ZoneInfo

from birthday_tracker.listings import list_all, list_this_month, list_today, sort_by_proximity
from birthday_tracker.models import EventRecord

TZ = ZoneInfo("America/Los_Angeles")
NOW = datetime(2026, 3, 14, 15, 30, tzinfo=TZ)


def _record(name: str, occurs_on: date, last_wish_sent: datetime | None = None) -> EventRecord:
    return EventRecord(
        id=f"id-{name.lower()}",
        owner_id="1",
        name=name,
        occurs_on=occurs_on,
        last_wish_sent=last_wish_sent,
    )


RECORDS = [
    _record("Alice", date(1990, 3, 14)),
    _record("Bob", date(1985, 3, 30)),
    _record("Carol", date(2001, 3, 2)),
    _record("Dave", date(1970, 12, 1)),
]


def test_list_all_counts_everything() -> None:
    listing = list_all(RECORDS)

    assert listing.count == 4
    assert listing.items == RECORDS


def test_list_today_matches_month_and_day() -> None:
    listing = list_today(RECORDS, NOW)

    assert listing.count == 1
    assert [record.name for record in listing.items] == ["Alice"]


def test_list_this_month_ignores_day_and_year() -> None:
    listing = list_this_month(RECORDS, NOW)

    assert listing.count == 3
    assert {record.name for record in listing.items} == {"Alice", "Bob", "Carol"}


def test_sort_by_proximity_puts_today_first_and_passed_last() -> None:
    rows = sort_by_proximity(RECORDS, NOW, "feb28")

    assert [row.record.name for row in rows] == ["Alice", "Bob", "Dave", "Carol"]
    assert rows[0].is_today is True
    assert rows[0].days_until == 0
    assert rows[0].countdown.total_millis < 0
    assert rows[-1].next_date == date(2027, 3, 2)


def test_upcoming_row_countdown_targets_local_midnight() -> None:
    rows = sort_by_proximity([_record("Bob", date(1985, 3, 15))], NOW, "feb28")

    assert rows[0].days_until == 1
    assert (rows[0].countdown.days, rows[0].countdown.hours, rows[0].countdown.minutes) == (0, 8, 30)
    assert rows[0].turning_age == 41


def test_upcoming_row_reports_wish_status_for_current_year() -> None:
    wished = _record("Erin", date(1990, 5, 5), last_wish_sent=datetime(2026, 1, 2, tzinfo=TZ))
    stale = _record("Finn", date(1990, 5, 6), last_wish_sent=datetime(2025, 5, 6, tzinfo=TZ))

    rows = {row.record.name: row for row in sort_by_proximity([wished, stale], NOW, "feb28")}

    assert rows["Erin"].wished_this_year is True
    assert rows["Finn"].wished_this_year is False
