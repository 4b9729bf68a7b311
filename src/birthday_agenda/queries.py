from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from birthday_agenda.date_logic import days_until_birthday, next_occurrence
from birthday_agenda.errors import ValidationError
from birthday_agenda.models import BirthdayRecord

ALL_MONTHS = "all"


def sorted_by_upcoming(records: Iterable[BirthdayRecord]) -> list[BirthdayRecord]:
    """Order by birthdate month, then day.

    Birthdays already past this year are not pushed to the end; the list reads
    like a January-to-December agenda.
    """
    return sorted(records, key=lambda record: (record.birthdate.month, record.birthdate.day))


def parse_month(value: int | str | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if not text or text == ALL_MONTHS:
            return None
        if not text.isdigit():
            raise ValidationError(f"month must be 1-12 or {ALL_MONTHS!r}, got {value!r}")
        value = int(text)
    if value < 1 or value > 12:
        raise ValidationError(f"month must be 1-12, got {value}")
    return value


def filter_by_month(records: Iterable[BirthdayRecord], month: int | str | None) -> list[BirthdayRecord]:
    selected = parse_month(month)
    if selected is None:
        return list(records)
    return [record for record in records if record.birthdate.month == selected]


def filter_by_name_contains(records: Iterable[BirthdayRecord], query: str | None) -> list[BirthdayRecord]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(records)
    return [record for record in records if needle in record.name.lower()]


def list_view(
    records: Iterable[BirthdayRecord],
    month: int | str | None = ALL_MONTHS,
    query: str | None = "",
) -> list[BirthdayRecord]:
    ordered = sorted_by_upcoming(records)
    return filter_by_name_contains(filter_by_month(ordered, month), query)


def next_upcoming(
    records: Iterable[BirthdayRecord],
    today: date,
    leap_day_rule: str,
) -> BirthdayRecord | None:
    best: BirthdayRecord | None = None
    best_date: date | None = None
    for record in records:
        occurrence = next_occurrence(record.birthdate, today, leap_day_rule)
        if best_date is None or occurrence < best_date:
            best, best_date = record, occurrence
    return best


def todays_birthdays(
    records: Iterable[BirthdayRecord],
    today: date,
    leap_day_rule: str,
) -> list[BirthdayRecord]:
    return [
        record
        for record in records
        if days_until_birthday(record.birthdate, today, leap_day_rule) == 0
    ]
