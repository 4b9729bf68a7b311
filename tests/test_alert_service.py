from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date

from birthday_agenda.accounts import AccountStore, SessionGate
from birthday_agenda.alert_service import TodayAlertService, format_today_alert
from birthday_agenda.record_store import RecordStore
from birthday_agenda.storage import InMemoryStorage


@dataclass
class FakeBot:
    sent_messages: list[tuple[int, str]] = field(default_factory=list)

    async def send_message(self, chat_id: int, text: str) -> None:
        self.sent_messages.append((chat_id, text))


def _service(logged_in: bool) -> tuple[TodayAlertService, FakeBot]:
    storage = InMemoryStorage()
    store = RecordStore(storage)
    store.create("Ana", "ana@example.com", "", "1990-06-20")
    store.create("Davi", "davi@example.com", "", "1999-06-20")
    store.create("Bruno", "bruno@example.com", "", "1985-01-05")

    accounts = AccountStore(storage)
    accounts.register("Owner", "owner@example.com", "pw")
    if logged_in:
        accounts.login("owner@example.com", "pw")

    bot = FakeBot()
    service = TodayAlertService(
        bot=bot,
        chat_id=100,
        store=store,
        gate=SessionGate(accounts),
        leap_day_rule="mar1",
    )
    return service, bot


def test_dispatch_sends_one_message_for_all_matches() -> None:
    service, bot = _service(logged_in=True)

    count = asyncio.run(service.dispatch_for_date(date(2024, 6, 20)))

    assert count == 2
    assert bot.sent_messages == [(100, "🎉 Today is Ana, Davi's birthday! 🎂")]


def test_dispatch_sends_nothing_without_matches() -> None:
    service, bot = _service(logged_in=True)

    assert asyncio.run(service.dispatch_for_date(date(2024, 6, 21))) == 0
    assert bot.sent_messages == []


def test_dispatch_is_skipped_when_logged_out() -> None:
    service, bot = _service(logged_in=False)

    assert asyncio.run(service.dispatch_for_date(date(2024, 6, 20))) == 0
    assert bot.sent_messages == []


def test_format_today_alert_without_names() -> None:
    assert format_today_alert([]) == "No birthdays today."
