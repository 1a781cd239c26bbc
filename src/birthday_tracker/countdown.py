from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE
MILLIS_PER_DAY = 24 * MILLIS_PER_HOUR


@dataclass(frozen=True)
class CountdownParts:
    days: int
    hours: int
    minutes: int
    seconds: int
    total_millis: int

    @property
    def has_passed(self) -> bool:
        return self.total_millis <= 0


def countdown_parts(target: datetime, now: datetime) -> CountdownParts:
    """Break ``target - now`` into whole days, hours, minutes and seconds.

    ``total_millis`` keeps its sign; the components are computed from the
    interval clamped at zero and are never negative.
    """
    total_millis = (target - now) // timedelta(milliseconds=1)
    remaining = max(0, total_millis)

    days, remaining = divmod(remaining, MILLIS_PER_DAY)
    hours, remaining = divmod(remaining, MILLIS_PER_HOUR)
    minutes, remaining = divmod(remaining, MILLIS_PER_MINUTE)
    seconds = remaining // MILLIS_PER_SECOND

    return CountdownParts(
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        total_millis=total_millis,
    )


def format_countdown(parts: CountdownParts) -> str:
    return f"{parts.days}d {parts.hours}h {parts.minutes}m {parts.seconds}s"
