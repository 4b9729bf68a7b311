from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from birthday_agenda.date_logic import validate_leap_day_rule
from birthday_agenda.errors import ValidationError
from birthday_agenda.models import DEFAULT_LEAP_DAY_RULE


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_allowed_chat_id: int
    storage_path: Path
    timezone: str
    alert_time: str
    leap_day_rule: str


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _parse_alert_time(value: str) -> str:
    pieces = value.strip().split(":")
    if len(pieces) != 2 or not all(piece.isdigit() for piece in pieces):
        raise ValueError("AGENDA_ALERT_TIME must be in HH:MM format")

    hour, minute = int(pieces[0]), int(pieces[1])
    if hour > 23 or minute > 59:
        raise ValueError("AGENDA_ALERT_TIME must be a valid 24-hour time")
    return f"{hour:02d}:{minute:02d}"


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")
    allowed_chat_id = int(_required_env("TELEGRAM_ALLOWED_CHAT_ID"))

    storage_path = Path(os.getenv("AGENDA_STORAGE_PATH", root / "data" / "agenda.json"))
    timezone = os.getenv("AGENDA_TIMEZONE", "UTC").strip() or "UTC"
    alert_time = _parse_alert_time(os.getenv("AGENDA_ALERT_TIME", "09:00"))

    try:
        leap_day_rule = validate_leap_day_rule(os.getenv("AGENDA_LEAP_DAY_RULE", DEFAULT_LEAP_DAY_RULE))
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc

    return Settings(
        telegram_bot_token=token,
        telegram_allowed_chat_id=allowed_chat_id,
        storage_path=storage_path,
        timezone=timezone,
        alert_time=alert_time,
        leap_day_rule=leap_day_rule,
    )
