from __future__ import annotations

from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo

from birthday_tracker.errors import ValidationError
from birthday_tracker.models import EventRecord


class InvalidBirthdayError(ValidationError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int) -> None:
    if month < 1 or month > 12:
        raise InvalidBirthdayError(f"Invalid month: {month}")

    if day < 1 or day > 31:
        raise InvalidBirthdayError(f"Invalid day: {day}")

    try:
        date(2000, month, day)
    except ValueError as exc:
        raise InvalidBirthdayError(f"Invalid month/day combination: {month:02d}-{day:02d}") from exc


def parse_event_date(value: str | date, tz: tzinfo) -> date:
    """Parse an ISO-8601 date or date-time into a calendar date.

    Aware date-times are moved into ``tz`` before the date is taken, so the
    month/day of an event is always read against the same zone as "now".
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        text = str(value).strip()
        if not text:
            raise InvalidBirthdayError("Date must not be empty")
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidBirthdayError(f"Not an ISO-8601 date: {text!r}") from exc

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz)
    return parsed.date()


def occurrence_for_year(month: int, day: int, year: int, leap_day_rule: str) -> date:
    if month == 2 and day == 29 and not is_leap_year(year):
        if leap_day_rule == "feb28":
            return date(year, 2, 28)
        if leap_day_rule == "mar1":
            return date(year, 3, 1)
        raise InvalidBirthdayError(f"Unsupported leap day rule: {leap_day_rule}")
    return date(year, month, day)


def next_occurrence(occurs_on: date, now: date, leap_day_rule: str) -> date:
    """Return the first occurrence of ``occurs_on`` on or after ``now``'s date.

    Only month and day of ``occurs_on`` are used. Time of day in ``now`` is
    ignored, so an event falling today resolves to today.
    """
    today = now.date() if isinstance(now, datetime) else now
    this_year = occurrence_for_year(occurs_on.month, occurs_on.day, today.year, leap_day_rule)
    if this_year >= today:
        return this_year
    return occurrence_for_year(occurs_on.month, occurs_on.day, today.year + 1, leap_day_rule)


def days_until(occurs_on: date, now: date, leap_day_rule: str) -> int:
    today = now.date() if isinstance(now, datetime) else now
    return (next_occurrence(occurs_on, today, leap_day_rule) - today).days


def occurrence_start(occurrence: date, tz: tzinfo) -> datetime:
    return datetime(occurrence.year, occurrence.month, occurrence.day, tzinfo=tz)


def is_today(occurs_on: date, now: date) -> bool:
    return occurs_on.month == now.month and occurs_on.day == now.day


def is_this_month(occurs_on: date, now: date) -> bool:
    return occurs_on.month == now.month


def day_key(occurs_on: date) -> tuple[int, int]:
    return occurs_on.month, occurs_on.day


def turning_age(record: EventRecord, occurrence: date) -> int | None:
    age = occurrence.year - record.occurs_on.year
    if age < 0:
        return None
    return age


def now_in(timezone_name: str) -> datetime:
    return datetime.now(ZoneInfo(timezone_name))
