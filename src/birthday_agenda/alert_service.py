from __future__ import annotations

import logging
from datetime import date

from telegram import Bot

from birthday_agenda.accounts import SessionGate
from birthday_agenda.queries import todays_birthdays
from birthday_agenda.record_store import RecordStore

LOGGER = logging.getLogger(__name__)


def format_today_alert(names: list[str]) -> str:
    if not names:
        return "No birthdays today."
    return f"🎉 Today is {', '.join(names)}'s birthday! 🎂"


class TodayAlertService:
    """Posts the day's birthdays to the owner chat."""

    def __init__(
        self,
        *,
        bot: Bot,
        chat_id: int,
        store: RecordStore,
        gate: SessionGate,
        leap_day_rule: str,
    ) -> None:
        self._bot = bot
        self._chat_id = chat_id
        self._store = store
        self._gate = gate
        self._leap_day_rule = leap_day_rule

    async def dispatch_for_date(self, today: date) -> int:
        if not self._gate.is_open():
            LOGGER.info("Skipping birthday alert for %s: nobody is logged in", today.isoformat())
            return 0

        matches = todays_birthdays(self._store.list(), today, self._leap_day_rule)
        if not matches:
            return 0

        message = format_today_alert([record.name for record in matches])
        await self._bot.send_message(chat_id=self._chat_id, text=message)
        LOGGER.info("Sent birthday alert for %s (%s records)", today.isoformat(), len(matches))
        return len(matches)
