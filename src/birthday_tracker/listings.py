from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from birthday_tracker.countdown import CountdownParts, countdown_parts
from birthday_tracker.date_logic import (
    days_until,
    is_this_month,
    is_today,
    next_occurrence,
    occurrence_start,
    turning_age,
)
from birthday_tracker.models import EventListing, EventRecord
from birthday_tracker.wish_ledger import is_eligible


@dataclass(frozen=True)
class UpcomingRow:
    record: EventRecord
    days_until: int
    next_date: date
    countdown: CountdownParts
    turning_age: int | None
    is_today: bool
    wished_this_year: bool


def list_all(records: Iterable[EventRecord]) -> EventListing:
    items = list(records)
    return EventListing(count=len(items), items=items)


def list_today(records: Iterable[EventRecord], now: date) -> EventListing:
    items = [record for record in records if is_today(record.occurs_on, now)]
    return EventListing(count=len(items), items=items)


def list_this_month(records: Iterable[EventRecord], now: date) -> EventListing:
    items = [record for record in records if is_this_month(record.occurs_on, now)]
    return EventListing(count=len(items), items=items)


def upcoming_row(record: EventRecord, now: datetime, leap_day_rule: str) -> UpcomingRow:
    next_date = next_occurrence(record.occurs_on, now, leap_day_rule)
    return UpcomingRow(
        record=record,
        days_until=days_until(record.occurs_on, now, leap_day_rule),
        next_date=next_date,
        countdown=countdown_parts(occurrence_start(next_date, now.tzinfo), now),
        turning_age=turning_age(record, next_date),
        is_today=is_today(record.occurs_on, now),
        wished_this_year=not is_eligible(record, now),
    )


def sort_by_proximity(records: Iterable[EventRecord], now: datetime, leap_day_rule: str) -> list[UpcomingRow]:
    rows = [upcoming_row(record, now, leap_day_rule) for record in records]
    rows.sort(key=lambda row: (row.days_until, row.record.name.lower()))
    return rows
