from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from typing import Any

from birthday_agenda.date_logic import parse_birthdate
from birthday_agenda.errors import NotFoundError, StorageError, ValidationError
from birthday_agenda.models import RECORDS_KEY, BirthdayRecord
from birthday_agenda.storage import KeyValueStorage

LOGGER = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "email", "password", "birthdate"}


def generate_record_id() -> str:
    millis = time.time_ns() // 1_000_000
    return f"{millis}{random.randint(0, 999):03d}"


def _required_text(field_name: str, value: Any) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} must not be empty")
    return text


def record_to_dict(record: BirthdayRecord) -> dict[str, str]:
    return {
        "id": record.id,
        "name": record.name,
        "email": record.email,
        "password": record.password,
        "birthdate": record.birthdate.isoformat(),
    }


def record_from_dict(row: dict[str, Any]) -> BirthdayRecord:
    # ids written by the browser version were numbers
    return BirthdayRecord(
        id=_required_text("id", row.get("id")),
        name=_required_text("name", row.get("name")),
        email=str(row.get("email") or ""),
        password=str(row.get("password") or ""),
        birthdate=parse_birthdate(row.get("birthdate")),
    )


class RecordStore:
    """Birthday records persisted under a single storage key.

    Every mutation rewrites the whole collection before returning. When the
    write fails the in-memory list is left as it was.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        id_factory: Callable[[], str] = generate_record_id,
    ) -> None:
        self._storage = storage
        self._id_factory = id_factory
        self._records: list[BirthdayRecord] = self._load()

    def _load(self) -> list[BirthdayRecord]:
        raw = self._storage.get(RECORDS_KEY)
        if raw is None:
            return []

        try:
            rows = json.loads(raw)
        except ValueError as exc:
            LOGGER.error("Stored records are not valid JSON: %s", exc)
            raise StorageError("Stored records are not valid JSON") from exc

        if not isinstance(rows, list):
            raise StorageError("Stored records must be a JSON list")

        records: list[BirthdayRecord] = []
        seen_ids: set[str] = set()
        for row in rows:
            if not isinstance(row, dict):
                raise StorageError("Stored record must be a JSON object")
            try:
                record = record_from_dict(row)
            except ValidationError as exc:
                raise StorageError(f"Stored record is invalid: {exc}") from exc
            if record.id in seen_ids:
                raise StorageError(f"Duplicate record id in storage: {record.id}")
            seen_ids.add(record.id)
            records.append(record)
        return records

    def _commit(self, records: list[BirthdayRecord]) -> None:
        payload = json.dumps([record_to_dict(record) for record in records])
        self._storage.set(RECORDS_KEY, payload)
        self._records = records

    def _index_of(self, record_id: str) -> int:
        for index, record in enumerate(self._records):
            if record.id == str(record_id):
                return index
        raise NotFoundError(f"No birthday record with id {record_id}")

    def _new_id(self) -> str:
        existing = {record.id for record in self._records}
        record_id = self._id_factory()
        while record_id in existing:
            record_id = self._id_factory()
        return record_id

    def reload(self) -> None:
        self._records = self._load()

    def list(self) -> list[BirthdayRecord]:
        return list(self._records)

    def get(self, record_id: str) -> BirthdayRecord:
        return self._records[self._index_of(record_id)]

    def create(self, name: str, email: str, password: str, birthdate: date | str) -> BirthdayRecord:
        record = BirthdayRecord(
            id=self._new_id(),
            name=_required_text("name", name),
            email=_required_text("email", email),
            password=password or "",
            birthdate=parse_birthdate(birthdate),
        )
        self._commit([*self._records, record])
        LOGGER.info("Added birthday record %s for %s", record.id, record.name)
        return record

    def update(self, record_id: str, **fields: Any) -> BirthdayRecord:
        unknown = set(fields) - EDITABLE_FIELDS
        if "id" in unknown:
            raise ValidationError("id cannot be changed")
        if unknown:
            raise ValidationError(f"Unknown record fields: {sorted(unknown)}")

        index = self._index_of(record_id)
        changes: dict[str, Any] = {}
        if "name" in fields:
            changes["name"] = _required_text("name", fields["name"])
        if "email" in fields:
            changes["email"] = _required_text("email", fields["email"])
        if "password" in fields:
            changes["password"] = fields["password"] or ""
        if "birthdate" in fields:
            changes["birthdate"] = parse_birthdate(fields["birthdate"])

        updated = replace(self._records[index], **changes)
        records = list(self._records)
        records[index] = updated
        self._commit(records)
        LOGGER.info("Updated birthday record %s", updated.id)
        return updated

    def delete(self, record_id: str) -> None:
        index = self._index_of(record_id)
        records = [*self._records[:index], *self._records[index + 1 :]]
        self._commit(records)
        LOGGER.info("Deleted birthday record %s", record_id)
