from __future__ import annotations

import logging
from datetime import datetime, time
from zoneinfo import ZoneInfo

from telegram.ext import Application, CallbackContext

from birthday_agenda.accounts import AccountStore, SessionGate
from birthday_agenda.alert_service import TodayAlertService
from birthday_agenda.bot_handlers import HandlerDependencies, build_handlers
from birthday_agenda.record_store import RecordStore
from birthday_agenda.settings import load_settings
from birthday_agenda.storage import JsonFileStorage


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_time_string(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


async def scheduled_alert_callback(context: CallbackContext) -> None:
    service: TodayAlertService = context.application.bot_data["alert_service"]
    settings = context.application.bot_data["settings"]
    today = datetime.now(ZoneInfo(settings.timezone)).date()
    await service.dispatch_for_date(today)


def main() -> None:
    configure_logging()

    settings = load_settings()
    storage = JsonFileStorage(settings.storage_path)
    store = RecordStore(storage)
    accounts = AccountStore(storage)
    gate = SessionGate(accounts)

    tz = ZoneInfo(settings.timezone)
    hour, minute = parse_time_string(settings.alert_time)

    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["settings"] = settings
    application.bot_data["handler_deps"] = HandlerDependencies(
        settings=settings,
        store=store,
        accounts=accounts,
        gate=gate,
    )
    application.bot_data["alert_service"] = TodayAlertService(
        bot=application.bot,
        chat_id=settings.telegram_allowed_chat_id,
        store=store,
        gate=gate,
        leap_day_rule=settings.leap_day_rule,
    )

    for handler in build_handlers():
        application.add_handler(handler)

    application.job_queue.run_daily(
        scheduled_alert_callback,
        time=time(hour=hour, minute=minute, tzinfo=tz),
        name="daily-birthday-alert",
    )

    application.run_polling()


if __name__ == "__main__":
    main()
