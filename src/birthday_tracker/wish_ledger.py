from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from birthday_tracker.errors import InfrastructureError, WishConflictError
from birthday_tracker.models import EventRecord
from birthday_tracker.record_store import RecordStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class WishReceipt:
    record: EventRecord
    sent_at: datetime


def last_wish_in(record: EventRecord, now: datetime) -> datetime | None:
    """Return the record's last send time expressed in ``now``'s zone."""
    last_sent = record.last_wish_sent
    if last_sent is None:
        return None
    if last_sent.tzinfo is not None and now.tzinfo is not None:
        return last_sent.astimezone(now.tzinfo)
    return last_sent


def is_eligible(record: EventRecord, now: datetime) -> bool:
    last_sent = last_wish_in(record, now)
    return last_sent is None or last_sent.year < now.year


class WishLedger:
    """Accepts at most one wish per record per calendar year.

    Eligibility is never stored: it is recomputed from the year of
    ``last_wish_sent`` against the year of the reference instant, so a record
    becomes eligible again on its own when the year rolls over.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def attempt_send(self, owner_id: str, record_id: str, now: datetime) -> WishReceipt:
        try:
            record = self._store.get_record(owner_id, record_id)
            if not is_eligible(record, now):
                LOGGER.info("Wish for %s rejected: already sent in %s", record_id, now.year)
                raise WishConflictError(record_id, last_wish_in(record, now))

            outcome = self._store.update_if(
                record_id,
                owner_id,
                lambda current: is_eligible(current, now),
                now,
            )
        except InfrastructureError:
            LOGGER.exception("Wish for %s failed: record store unavailable", record_id)
            raise

        if not outcome.applied:
            LOGGER.info("Wish for %s rejected: sent concurrently in %s", record_id, now.year)
            raise WishConflictError(record_id, last_wish_in(outcome.record, now))

        LOGGER.info(
            "Happy Birthday sent to %s (id=%s) by owner %s",
            outcome.record.name,
            record_id,
            owner_id,
        )
        return WishReceipt(record=outcome.record, sent_at=now)
