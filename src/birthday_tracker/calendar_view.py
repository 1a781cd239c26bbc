from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from birthday_tracker.date_logic import day_key, occurrence_for_year
from birthday_tracker.models import EventRecord

DISPLAY_COUNT_LIMIT = 9
WEEKDAY_HEADER = " ".join(f" {name:<4}" for name in ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")).rstrip()


@dataclass
class DayGroup:
    records: list[EventRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def display_count(self) -> str:
        if self.count > DISPLAY_COUNT_LIMIT:
            return f"{DISPLAY_COUNT_LIMIT}+"
        return str(self.count)


def group_by_day(records: Iterable[EventRecord]) -> dict[tuple[int, int], DayGroup]:
    """Group records under their (month, day) key, keeping input order inside each group."""
    groups: dict[tuple[int, int], DayGroup] = {}
    for record in records:
        groups.setdefault(day_key(record.occurs_on), DayGroup()).records.append(record)
    return groups


def dates_with_events(records: Iterable[EventRecord], display_year: int, leap_day_rule: str) -> set[date]:
    return {
        occurrence_for_year(record.occurs_on.month, record.occurs_on.day, display_year, leap_day_rule)
        for record in records
    }


def groups_for_month(
    groups: dict[tuple[int, int], DayGroup],
    year: int,
    month: int,
    leap_day_rule: str,
) -> list[tuple[date, DayGroup]]:
    """Day groups shown in one month of ``year``, ordered by the date they land on.

    Feb 29 groups land on the day the leap-day rule picks for ``year``; groups
    that land on the same date are merged.
    """
    shown_groups: dict[date, DayGroup] = {}
    for (group_month, group_day), group in groups.items():
        shown = occurrence_for_year(group_month, group_day, year, leap_day_rule)
        if shown.month != month:
            continue
        shown_groups.setdefault(shown, DayGroup()).records.extend(group.records)
    return sorted(shown_groups.items())


def counts_for_month(
    groups: dict[tuple[int, int], DayGroup],
    year: int,
    month: int,
    leap_day_rule: str,
) -> dict[int, int]:
    """Per-day event counts for one displayed month, keyed by day of month."""
    return {shown.day: group.count for shown, group in groups_for_month(groups, year, month, leap_day_rule)}


def _badge(count: int) -> str:
    if count == 0:
        return ""
    if count == 1:
        return "•"
    if count > DISPLAY_COUNT_LIMIT:
        return f"{DISPLAY_COUNT_LIMIT}+"
    return str(count)


def render_month_grid(year: int, month: int, counts: dict[int, int], today: date | None = None) -> str:
    lines = [f"{calendar.month_name[month]} {year}", WEEKDAY_HEADER]

    for week in calendar.Calendar(firstweekday=0).monthdayscalendar(year, month):
        cells: list[str] = []
        for day in week:
            if day == 0:
                cells.append(" " * 5)
                continue
            marker = ">" if today is not None and today == date(year, month, day) else " "
            cells.append(f"{marker}{day:>2}{_badge(counts.get(day, 0)):<2}")
        lines.append(" ".join(cells).rstrip())

    return "\n".join(lines)
