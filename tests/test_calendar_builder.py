from datetime import date

import pytest

from birthday_agenda.calendar_builder import build_month, day_detail, shift_month, sunday_weekday_index
from birthday_agenda.errors import ValidationError
from birthday_agenda.models import BirthdayRecord


def _record(record_id: str, name: str, birthdate: date) -> BirthdayRecord:
    return BirthdayRecord(id=record_id, name=name, email="", password="", birthdate=birthdate)


RECORDS = [
    _record("1", "Ana Lima", date(1990, 1, 15)),
    _record("2", "Bruno Alves", date(1985, 1, 15)),
    _record("3", "Carla Souza", date(1992, 1, 31)),
    _record("4", "Leo Bissexto", date(2000, 2, 29)),
    _record("5", "Davi Rocha", date(1999, 6, 1)),
]


def test_build_january_2024() -> None:
    grid = build_month(2024, 1, RECORDS, "mar1")

    assert grid.leading_blanks == sunday_weekday_index(date(2024, 1, 1)) == 1
    assert len(grid.days) == 31
    assert [entry.day for entry in grid.days] == list(range(1, 32))
    assert [record.id for record in grid.days[14].records] == ["1", "2"]
    assert [record.id for record in grid.days[30].records] == ["3"]
    assert grid.days[0].records == ()


def test_build_month_leading_blanks_use_sunday_zero() -> None:
    # 2024-06-01 is a Saturday, 2024-09-01 a Sunday
    assert build_month(2024, 6, RECORDS, "mar1").leading_blanks == 6
    assert build_month(2024, 9, RECORDS, "mar1").leading_blanks == 0


def test_february_length_and_leap_day_placement() -> None:
    leap = build_month(2024, 2, RECORDS, "mar1")
    assert len(leap.days) == 29
    assert [record.id for record in leap.days[28].records] == ["4"]

    plain = build_month(2025, 2, RECORDS, "mar1")
    assert len(plain.days) == 28
    assert all(not entry.records for entry in plain.days)
    assert [record.id for record in build_month(2025, 3, RECORDS, "mar1").days[0].records] == ["4"]

    assert [record.id for record in build_month(2025, 2, RECORDS, "feb28").days[27].records] == ["4"]


def test_build_month_rejects_invalid_month() -> None:
    with pytest.raises(ValidationError):
        build_month(2024, 13, RECORDS, "mar1")


def test_day_detail() -> None:
    assert [record.name for record in day_detail(2024, 1, 15, RECORDS, "mar1")] == ["Ana Lima", "Bruno Alves"]
    assert day_detail(2024, 1, 16, RECORDS, "mar1") == []
    with pytest.raises(ValidationError):
        day_detail(2025, 2, 29, RECORDS, "mar1")


def test_shift_month_wraps_years() -> None:
    assert shift_month(2024, 1, -1) == (2023, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2024, 6, 0) == (2024, 6)
