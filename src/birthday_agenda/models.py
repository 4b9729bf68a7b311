from __future__ import annotations

from dataclasses import dataclass
from datetime import date

RECORDS_KEY = "aniversariantes"
USERS_KEY = "usuarios"
LOGGED_IN_KEY = "logado"

DEFAULT_LEAP_DAY_RULE = "mar1"
LEAP_DAY_RULES = {"feb28", "mar1"}


@dataclass(frozen=True)
class BirthdayRecord:
    id: str
    name: str
    email: str
    password: str
    birthdate: date


@dataclass(frozen=True)
class UserAccount:
    name: str
    email: str
    password_hash: str


@dataclass(frozen=True)
class CalendarDay:
    day: int
    records: tuple[BirthdayRecord, ...]


@dataclass(frozen=True)
class CalendarMonth:
    year: int
    month: int
    leading_blanks: int
    days: tuple[CalendarDay, ...]
