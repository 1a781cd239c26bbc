from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from birthday_tracker.errors import InfrastructureError, RecordNotFoundError, ValidationError
from birthday_tracker.models import EventRecord

LOGGER = logging.getLogger(__name__)

STORE_VERSION = 1
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


@dataclass(frozen=True)
class ConditionalUpdate:
    applied: bool
    record: EventRecord


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def validate_details(
    name: str,
    *,
    email: str | None = None,
    phone: str | None = None,
    notes: str | None = None,
) -> tuple[str, str | None, str | None, str | None]:
    cleaned_name = name.strip()
    if len(cleaned_name) < NAME_MIN_LENGTH:
        raise ValidationError(f"Name must be at least {NAME_MIN_LENGTH} characters")
    if len(cleaned_name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name cannot exceed {NAME_MAX_LENGTH} characters")

    cleaned_email = _clean_optional(email)
    if cleaned_email is not None:
        cleaned_email = cleaned_email.lower()
        if not EMAIL_PATTERN.match(cleaned_email):
            raise ValidationError("Please provide a valid email")

    cleaned_notes = _clean_optional(notes)
    if cleaned_notes is not None and len(cleaned_notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")

    return cleaned_name, cleaned_email, _clean_optional(phone), cleaned_notes


def new_record(
    owner_id: str,
    name: str,
    occurs_on: date,
    *,
    email: str | None = None,
    phone: str | None = None,
    notes: str | None = None,
) -> EventRecord:
    cleaned_name, cleaned_email, cleaned_phone, cleaned_notes = validate_details(
        name, email=email, phone=phone, notes=notes
    )
    return EventRecord(
        id=str(uuid.uuid4()),
        owner_id=str(owner_id),
        name=cleaned_name,
        occurs_on=occurs_on,
        email=cleaned_email,
        phone=cleaned_phone,
        notes=cleaned_notes,
    )


def record_to_dict(record: EventRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "owner_id": record.owner_id,
        "name": record.name,
        "occurs_on": record.occurs_on.isoformat(),
        "last_wish_sent": record.last_wish_sent.isoformat() if record.last_wish_sent else None,
        "email": record.email,
        "phone": record.phone,
        "notes": record.notes,
    }


def record_from_dict(row: dict[str, Any]) -> EventRecord:
    last_wish_sent = row.get("last_wish_sent")
    return EventRecord(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        name=str(row["name"]),
        occurs_on=date.fromisoformat(str(row["occurs_on"])),
        last_wish_sent=datetime.fromisoformat(str(last_wish_sent)) if last_wish_sent else None,
        email=row.get("email"),
        phone=row.get("phone"),
        notes=row.get("notes"),
    )


class RecordStore:
    """JSON-file record store with owner-scoped reads and a conditional update.

    Every write re-reads the file while holding the store lock, so a
    predicate passed to :meth:`update_if` sees the persisted state at the
    moment of the write rather than a caller's earlier snapshot.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def _load(self) -> list[EventRecord]:
        if not self._path.exists():
            return []

        try:
            with self._path.open("r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
            return [record_from_dict(row) for row in data.get("records", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise InfrastructureError(f"Record store unreadable: {self._path}") from exc

    def _save_atomic(self, records: list[EventRecord]) -> None:
        payload = {
            "version": STORE_VERSION,
            "records": [record_to_dict(record) for record in records],
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                delete=False,
            ) as temp_file:
                json.dump(payload, temp_file, indent=2)
                temp_file.write("\n")
                temp_name = temp_file.name

            os.replace(temp_name, self._path)
        except OSError as exc:
            raise InfrastructureError(f"Record store not writable: {self._path}") from exc

    @staticmethod
    def _find_index(records: list[EventRecord], owner_id: str, record_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id and record.owner_id == str(owner_id):
                return index
        raise RecordNotFoundError(record_id)

    def list_records(self, owner_id: str) -> list[EventRecord]:
        records = [record for record in self._load() if record.owner_id == str(owner_id)]
        records.sort(key=lambda record: record.occurs_on)
        return records

    def get_record(self, owner_id: str, record_id: str) -> EventRecord:
        records = self._load()
        return records[self._find_index(records, owner_id, record_id)]

    def add_record(self, record: EventRecord) -> EventRecord:
        with self._lock:
            records = self._load()
            records.append(record)
            self._save_atomic(records)
        LOGGER.info("Stored birthday %s for owner %s", record.id, record.owner_id)
        return record

    def update_details(
        self,
        owner_id: str,
        record_id: str,
        *,
        name: str,
        occurs_on: date,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
    ) -> EventRecord:
        cleaned_name, cleaned_email, cleaned_phone, cleaned_notes = validate_details(
            name, email=email, phone=phone, notes=notes
        )
        with self._lock:
            records = self._load()
            index = self._find_index(records, owner_id, record_id)
            updated = replace(
                records[index],
                name=cleaned_name,
                occurs_on=occurs_on,
                email=cleaned_email,
                phone=cleaned_phone,
                notes=cleaned_notes,
            )
            records[index] = updated
            self._save_atomic(records)
        LOGGER.info("Updated birthday %s for owner %s", record_id, owner_id)
        return updated

    def delete_record(self, owner_id: str, record_id: str) -> EventRecord:
        with self._lock:
            records = self._load()
            removed = records.pop(self._find_index(records, owner_id, record_id))
            self._save_atomic(records)
        LOGGER.info("Deleted birthday %s for owner %s", record_id, owner_id)
        return removed

    def update_if(
        self,
        record_id: str,
        owner_id: str,
        predicate: Callable[[EventRecord], bool],
        new_last_wish_sent: datetime,
    ) -> ConditionalUpdate:
        with self._lock:
            records = self._load()
            index = self._find_index(records, owner_id, record_id)
            current = records[index]
            if not predicate(current):
                return ConditionalUpdate(applied=False, record=current)

            updated = replace(current, last_wish_sent=new_last_wish_sent)
            records[index] = updated
            self._save_atomic(records)
        return ConditionalUpdate(applied=True, record=updated)
