from pathlib import Path

import pytest

from birthday_agenda.settings import load_settings


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_ALLOWED_CHAT_ID", "222")
    for name in ("AGENDA_STORAGE_PATH", "AGENDA_TIMEZONE", "AGENDA_ALERT_TIME", "AGENDA_LEAP_DAY_RULE"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.telegram_allowed_chat_id == 222
    assert settings.storage_path == tmp_path / "data" / "agenda.json"
    assert settings.timezone == "UTC"
    assert settings.alert_time == "09:00"
    assert settings.leap_day_rule == "mar1"


def test_load_settings_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_ALLOWED_CHAT_ID", "222")

    monkeypatch.setenv("AGENDA_LEAP_DAY_RULE", "feb30")
    with pytest.raises(ValueError):
        load_settings()

    monkeypatch.setenv("AGENDA_LEAP_DAY_RULE", "FEB28")
    monkeypatch.setenv("AGENDA_ALERT_TIME", "25:00")
    with pytest.raises(ValueError):
        load_settings()


def test_load_settings_requires_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.setenv("TELEGRAM_ALLOWED_CHAT_ID", "222")

    with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
        load_settings()
