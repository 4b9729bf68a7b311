"""Month grid bucketing for the calendar view."""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date

from birthday_agenda.date_logic import occurrence_in_year
from birthday_agenda.errors import ValidationError
from birthday_agenda.models import BirthdayRecord, CalendarDay, CalendarMonth


def _validate_year_month(year: int, month: int) -> None:
    if month < 1 or month > 12:
        raise ValidationError(f"month must be 1-12, got {month}")
    if year < 1 or year > 9999:
        raise ValidationError(f"year out of range: {year}")


def sunday_weekday_index(target: date) -> int:
    """Weekday index with Sunday as 0."""
    return (target.weekday() + 1) % 7


def build_month(
    year: int,
    month: int,
    records: Iterable[BirthdayRecord],
    leap_day_rule: str,
) -> CalendarMonth:
    _validate_year_month(year, month)
    _, days_in_month = calendar.monthrange(year, month)

    buckets: dict[int, list[BirthdayRecord]] = {}
    for record in records:
        occurrence = occurrence_in_year(record.birthdate, year, leap_day_rule)
        if occurrence.month == month:
            buckets.setdefault(occurrence.day, []).append(record)

    days = tuple(
        CalendarDay(day=day, records=tuple(buckets.get(day, [])))
        for day in range(1, days_in_month + 1)
    )
    return CalendarMonth(
        year=year,
        month=month,
        leading_blanks=sunday_weekday_index(date(year, month, 1)),
        days=days,
    )


def day_detail(
    year: int,
    month: int,
    day: int,
    records: Iterable[BirthdayRecord],
    leap_day_rule: str,
) -> list[BirthdayRecord]:
    _validate_year_month(year, month)
    try:
        target = date(year, month, day)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {year:04d}-{month:02d}-{day:02d}") from exc

    return [
        record
        for record in records
        if occurrence_in_year(record.birthdate, year, leap_day_rule) == target
    ]


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
