from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


LEAP_DAY_RULES = ("feb28", "mar1")
DEFAULT_LEAP_DAY_RULE = "feb28"


@dataclass(frozen=True)
class EventRecord:
    id: str
    owner_id: str
    name: str
    occurs_on: date
    last_wish_sent: datetime | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None

    @property
    def short_id(self) -> str:
        return self.id[:8]


@dataclass(frozen=True)
class AppConfig:
    timezone: str
    leap_day_rule: str
    countdown_refresh_seconds: int
    countdown_max_minutes: int


@dataclass(frozen=True)
class EventListing:
    count: int
    items: list[EventRecord]
