from __future__ import annotations

from datetime import datetime

CONFLICT_ALREADY_SENT = "already_sent_this_year"


class BirthdayTrackerError(Exception):
    pass


class ValidationError(BirthdayTrackerError, ValueError):
    pass


class RecordNotFoundError(BirthdayTrackerError, LookupError):
    """Raised for missing records and for records owned by someone else."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Birthday not found: {record_id}")
        self.record_id = record_id


class WishConflictError(BirthdayTrackerError):
    reason = CONFLICT_ALREADY_SENT

    def __init__(self, record_id: str, last_sent: datetime) -> None:
        super().__init__(f"Wish already sent this year for {record_id}")
        self.record_id = record_id
        self.last_sent = last_sent

    @property
    def available_year(self) -> int:
        return self.last_sent.year + 1


class InfrastructureError(BirthdayTrackerError):
    pass
