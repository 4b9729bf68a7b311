from __future__ import annotations

import re
from datetime import date, datetime

from birthday_agenda.errors import ValidationError
from birthday_agenda.models import LEAP_DAY_RULES


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _as_date(value: date) -> date:
    # datetime is a date subclass; drop the time of day
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_birthdate(value: date | str | None) -> date:
    if isinstance(value, date):
        return _as_date(value)

    text = str(value or "").strip()
    if not text:
        raise ValidationError("birthdate must not be empty")

    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", text):
        raise ValidationError(f"birthdate must use YYYY-MM-DD: {text!r}")

    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"birthdate must be a valid YYYY-MM-DD date: {text!r}") from exc


def validate_leap_day_rule(rule: str) -> str:
    normalized = rule.strip().lower()
    if normalized not in LEAP_DAY_RULES:
        raise ValidationError(f"leap_day_rule must be one of {sorted(LEAP_DAY_RULES)}")
    return normalized


def occurrence_in_year(birthdate: date, year: int, leap_day_rule: str) -> date:
    """Date on which ``birthdate`` recurs in ``year``.

    Feb 29 birthdates land on Mar 1 (``mar1``) or Feb 28 (``feb28``) in
    non-leap years.
    """
    if birthdate.month == 2 and birthdate.day == 29 and not is_leap_year(year):
        if leap_day_rule == "feb28":
            return date(year, 2, 28)
        if leap_day_rule == "mar1":
            return date(year, 3, 1)
        raise ValidationError(f"Unsupported leap day rule: {leap_day_rule}")
    return date(year, birthdate.month, birthdate.day)


def next_occurrence(birthdate: date, today: date, leap_day_rule: str) -> date:
    today = _as_date(today)
    this_year = occurrence_in_year(birthdate, today.year, leap_day_rule)
    if this_year >= today:
        return this_year
    return occurrence_in_year(birthdate, today.year + 1, leap_day_rule)


def days_until(target: date, today: date) -> int:
    return (_as_date(target) - _as_date(today)).days


def days_until_birthday(birthdate: date, today: date, leap_day_rule: str) -> int:
    return days_until(next_occurrence(birthdate, today, leap_day_rule), today)


def turning_age(birthdate: date, occurrence: date) -> int:
    return occurrence.year - birthdate.year
