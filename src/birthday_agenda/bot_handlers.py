from __future__ import annotations

import calendar
import html
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import (
    CallbackContext,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from birthday_agenda.accounts import AccountStore, SessionGate
from birthday_agenda.alert_service import format_today_alert
from birthday_agenda.calendar_builder import build_month, day_detail, shift_month
from birthday_agenda.date_logic import days_until, next_occurrence, parse_birthdate, turning_age
from birthday_agenda.errors import AgendaError, ValidationError
from birthday_agenda.models import BirthdayRecord, CalendarMonth
from birthday_agenda.queries import ALL_MONTHS, list_view, next_upcoming, sorted_by_upcoming, todays_birthdays
from birthday_agenda.record_store import RecordStore
from birthday_agenda.settings import Settings

LOGGER = logging.getLogger(__name__)

(
    STATE_ADD_NAME,
    STATE_ADD_EMAIL,
    STATE_ADD_PASSWORD,
    STATE_ADD_PASSWORD_CONFIRM,
    STATE_ADD_BIRTHDATE,
    STATE_ADD_CONFIRM,
    STATE_EDIT_SELECT,
    STATE_EDIT_NAME,
    STATE_EDIT_EMAIL,
    STATE_EDIT_PASSWORD,
    STATE_EDIT_PASSWORD_CONFIRM,
    STATE_EDIT_BIRTHDATE,
    STATE_EDIT_CONFIRM,
    STATE_DELETE_SELECT,
    STATE_DELETE_CONFIRM,
) = range(15)

PENDING_ADD_KEY = "pending_add_record"
PENDING_EDIT_KEY = "pending_edit_record"
PENDING_DELETE_KEY = "pending_delete_record"
CALENDAR_MONTH_KEY = "calendar_month"

WEEKDAY_HEADER = "Su Mo Tu We Th Fr Sa"


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    store: RecordStore
    accounts: AccountStore
    gate: SessionGate


@dataclass(frozen=True)
class BirthdayListRow:
    name: str
    birthdate: date
    days_until: int
    next_date: date
    turning_age: int


def is_authorized(update: Update, settings: Settings) -> bool:
    effective_chat = update.effective_chat
    if effective_chat is None:
        return False
    return effective_chat.id == settings.telegram_allowed_chat_id


async def _deny_unauthorized(update: Update) -> None:
    if update.effective_message:
        await update.effective_message.reply_text("This bot is restricted to its configured owner.")


async def _authorized_deps(
    update: Update,
    context: CallbackContext,
    *,
    require_login: bool = True,
) -> HandlerDependencies | None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return None
    if require_login and not deps.gate.is_open():
        if update.effective_message:
            await update.effective_message.reply_text("Please /login first.")
        return None
    return deps


def _today(settings: Settings) -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


def _message_text(update: Update) -> str:
    return (update.effective_message.text or "").strip()


def _is_skip(value: str) -> bool:
    return value.strip().lower() in {"skip", "keep", "same"}


def _format_month_day(value: date) -> str:
    return f"{value.month:02d}-{value.day:02d}"


def build_list_rows(records: list[BirthdayRecord], today: date, leap_day_rule: str) -> list[BirthdayListRow]:
    rows: list[BirthdayListRow] = []
    for record in records:
        next_date = next_occurrence(record.birthdate, today, leap_day_rule)
        rows.append(
            BirthdayListRow(
                name=record.name,
                birthdate=record.birthdate,
                days_until=days_until(next_date, today),
                next_date=next_date,
                turning_age=turning_age(record.birthdate, next_date),
            )
        )
    return rows


def _render_help() -> str:
    return (
        "Commands:\n"
        "/register <name> <email> <password> - Create the owner account\n"
        "/login <email> <password> - Unlock the agenda\n"
        "/logout - Lock the agenda\n"
        "/list [month|all] [name] - Birthdays ordered by month/day\n"
        "/next - The next upcoming birthday\n"
        "/today - Today's birthdays\n"
        "/calendar [YYYY-MM|prev|next] - Month calendar\n"
        "/day <YYYY-MM-DD|day> - Who has a birthday on that day\n"
        "/add - Add a birthday\n"
        "/edit - Edit a birthday\n"
        "/delete - Delete a birthday\n"
        "/cancel - Cancel the active wizard\n"
        "/help - Show this help message\n\n"
        "Birthdate format: YYYY-MM-DD"
    )


def _render_list_message(rows: list[BirthdayListRow]) -> str:
    if not rows:
        return "No birthdays found."

    lines = [f"Birthdays ({len(rows)})"]
    for index, row in enumerate(rows, start=1):
        lines.append(f"{index}. {row.name}")
        details = [
            _format_month_day(row.birthdate),
            f"In {row.days_until}d",
            f"Next {row.next_date.isoformat()}",
            f"Turning {row.turning_age}",
        ]
        lines.append(f"   {' | '.join(details)}")
    return "\n".join(lines)


def _render_upcoming(record: BirthdayRecord | None, today: date, leap_day_rule: str) -> str:
    if record is None:
        return "No birthdays are tracked yet."
    next_date = next_occurrence(record.birthdate, today, leap_day_rule)
    return (
        f"Next: {record.name} - in {days_until(next_date, today)} day(s) "
        f"({next_date.isoformat()})"
    )


def _render_calendar(month: CalendarMonth) -> str:
    """HTML message: a monospace month grid followed by the names per day."""
    cells = ["   "] * month.leading_blanks
    for entry in month.days:
        marker = "*" if entry.records else " "
        cells.append(f"{entry.day:>2}{marker}")

    weeks = ["".join(cells[start : start + 7]).rstrip() for start in range(0, len(cells), 7)]
    title = f"{calendar.month_name[month.month]} {month.year}"
    grid = "\n".join([WEEKDAY_HEADER, *weeks])

    lines = [f"<b>{title}</b>", f"<pre>{grid}</pre>"]
    for entry in month.days:
        if entry.records:
            first_names = ", ".join(html.escape(record.name.split(" ")[0]) for record in entry.records)
            lines.append(f"{entry.day}: {first_names}")
    return "\n".join(lines)


def _render_day_detail(target: date, records: list[BirthdayRecord]) -> str:
    label = target.isoformat()
    if not records:
        return f"No birthdays on {label}."
    people = " - ".join(f"{record.name} ({record.birthdate.isoformat()})" for record in records)
    return f"{label}: {people}"


def _render_selection(title: str, records: list[BirthdayRecord]) -> str:
    lines = [title, "Reply with the number of the entry:"]
    for index, record in enumerate(records, start=1):
        lines.append(f"{index}. {record.name} | {record.birthdate.isoformat()} | {record.email}")
    return "\n".join(lines)


def parse_list_args(args: list[str]) -> tuple[str, str]:
    """Split /list arguments into (month, name query)."""
    if args and (args[0].isdigit() or args[0].lower() == ALL_MONTHS):
        return args[0], " ".join(args[1:])
    return ALL_MONTHS, " ".join(args)


def parse_calendar_arg(arg: str | None, current: tuple[int, int]) -> tuple[int, int]:
    if arg is None:
        return current

    value = arg.strip().lower()
    if value == "prev":
        return shift_month(*current, -1)
    if value == "next":
        return shift_month(*current, 1)

    pieces = value.split("-")
    if len(pieces) != 2 or not all(piece.isdigit() for piece in pieces):
        raise ValidationError("Calendar month must be YYYY-MM, prev or next")
    year, month = int(pieces[0]), int(pieces[1])
    if month < 1 or month > 12:
        raise ValidationError(f"month must be 1-12, got {month}")
    return year, month


def parse_day_arg(arg: str, current: tuple[int, int]) -> date:
    value = arg.strip()
    if value.isdigit():
        year, month = current
        try:
            return date(year, month, int(value))
        except ValueError as exc:
            raise ValidationError(f"Invalid day for {year:04d}-{month:02d}: {value}") from exc
    return parse_birthdate(value)


async def help_command(update: Update, context: CallbackContext) -> None:
    if await _authorized_deps(update, context, require_login=False) is None:
        return
    await update.effective_message.reply_text(_render_help())


async def register_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context, require_login=False)
    if deps is None:
        return

    args = list(context.args or [])
    if len(args) < 3:
        await update.effective_message.reply_text("Usage: /register <name> <email> <password>")
        return

    name, email, password = " ".join(args[:-2]), args[-2], args[-1]
    try:
        deps.accounts.register(name, email, password)
    except AgendaError as exc:
        await update.effective_message.reply_text(f"Registration failed: {exc}")
        return
    await update.effective_message.reply_text("Account created. Use /login to continue.")


async def login_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context, require_login=False)
    if deps is None:
        return

    args = list(context.args or [])
    if len(args) != 2:
        await update.effective_message.reply_text("Usage: /login <email> <password>")
        return

    try:
        account = deps.accounts.login(args[0], args[1])
    except AgendaError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    await update.effective_message.reply_text(f"Welcome, {account.name}!")


async def logout_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context, require_login=False)
    if deps is None:
        return
    deps.accounts.logout()
    await update.effective_message.reply_text("Logged out.")


async def list_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    month, query = parse_list_args(list(context.args or []))
    try:
        records = list_view(deps.store.list(), month, query)
    except ValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    rows = build_list_rows(records, _today(deps.settings), deps.settings.leap_day_rule)
    await update.effective_message.reply_text(_render_list_message(rows))


async def next_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    today = _today(deps.settings)
    record = next_upcoming(deps.store.list(), today, deps.settings.leap_day_rule)
    await update.effective_message.reply_text(_render_upcoming(record, today, deps.settings.leap_day_rule))


async def today_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    matches = todays_birthdays(deps.store.list(), _today(deps.settings), deps.settings.leap_day_rule)
    await update.effective_message.reply_text(format_today_alert([record.name for record in matches]))


async def calendar_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    today = _today(deps.settings)
    current = context.user_data.get(CALENDAR_MONTH_KEY, (today.year, today.month))
    args = list(context.args or [])
    try:
        year, month = parse_calendar_arg(args[0] if args else None, current)
        grid = build_month(year, month, deps.store.list(), deps.settings.leap_day_rule)
    except ValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    context.user_data[CALENDAR_MONTH_KEY] = (year, month)
    await update.effective_message.reply_text(_render_calendar(grid), parse_mode=ParseMode.HTML)


async def day_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    args = list(context.args or [])
    if len(args) != 1:
        await update.effective_message.reply_text("Usage: /day <YYYY-MM-DD> or /day <day of the calendar month>")
        return

    today = _today(deps.settings)
    current = context.user_data.get(CALENDAR_MONTH_KEY, (today.year, today.month))
    try:
        target = parse_day_arg(args[0], current)
        matches = day_detail(target.year, target.month, target.day, deps.store.list(), deps.settings.leap_day_rule)
    except ValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    await update.effective_message.reply_text(_render_day_detail(target, matches))


async def add_start(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    context.user_data[PENDING_ADD_KEY] = {}
    await update.effective_message.reply_text("Add birthday wizard started.\nStep 1/5: Send the person's name.")
    return STATE_ADD_NAME


async def add_name(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    name = _message_text(update)
    if not name:
        await update.effective_message.reply_text("Name cannot be empty. Please send a name.")
        return STATE_ADD_NAME

    context.user_data[PENDING_ADD_KEY] = {"name": name}
    await update.effective_message.reply_text("Step 2/5: Send the email address.")
    return STATE_ADD_EMAIL


async def add_email(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    email = _message_text(update)
    if not email:
        await update.effective_message.reply_text("Email cannot be empty. Please send an email.")
        return STATE_ADD_EMAIL

    context.user_data.setdefault(PENDING_ADD_KEY, {})["email"] = email
    await update.effective_message.reply_text("Step 3/5: Send a password, or /skip to leave it empty.")
    return STATE_ADD_PASSWORD


async def add_password(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.setdefault(PENDING_ADD_KEY, {})
    pending["password"] = _message_text(update)
    await update.effective_message.reply_text("Send the password again to confirm it.")
    return STATE_ADD_PASSWORD_CONFIRM


async def add_password_skip(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    context.user_data.setdefault(PENDING_ADD_KEY, {})["password"] = ""
    await update.effective_message.reply_text("Step 4/5: Send the birthdate as YYYY-MM-DD.")
    return STATE_ADD_BIRTHDATE


async def add_password_confirm(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.setdefault(PENDING_ADD_KEY, {})
    if _message_text(update) != pending.get("password"):
        await update.effective_message.reply_text("Passwords do not match. Step 3/5: Send a password, or /skip.")
        return STATE_ADD_PASSWORD

    await update.effective_message.reply_text("Step 4/5: Send the birthdate as YYYY-MM-DD.")
    return STATE_ADD_BIRTHDATE


async def add_birthdate(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    try:
        birthdate = parse_birthdate(_message_text(update))
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. Please send YYYY-MM-DD.")
        return STATE_ADD_BIRTHDATE

    pending = context.user_data.setdefault(PENDING_ADD_KEY, {})
    pending["birthdate"] = birthdate.isoformat()

    summary = (
        "Step 5/5: Confirm this entry:\n"
        f"Name: {pending.get('name')}\n"
        f"Email: {pending.get('email')}\n"
        f"Birthdate: {pending['birthdate']}\n\n"
        "Reply with yes to save, or no to cancel."
    )
    await update.effective_message.reply_text(summary)
    return STATE_ADD_CONFIRM


async def add_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = _message_text(update).lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_ADD_CONFIRM

    pending = context.user_data.pop(PENDING_ADD_KEY, {})
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        deps.store.create(
            pending.get("name", ""),
            pending.get("email", ""),
            pending.get("password", ""),
            pending.get("birthdate", ""),
        )
    except AgendaError as exc:
        await update.effective_message.reply_text(f"Could not save: {exc}")
        return ConversationHandler.END

    await update.effective_message.reply_text("Birthday saved.")
    return ConversationHandler.END


async def edit_start(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    records = sorted_by_upcoming(deps.store.list())
    if not records:
        await update.effective_message.reply_text("No birthdays are currently tracked.")
        return ConversationHandler.END

    context.user_data[PENDING_EDIT_KEY] = {"choices": [record.id for record in records]}
    await update.effective_message.reply_text(
        _render_selection("Edit birthday wizard started.\nStep 1/5:", records)
    )
    return STATE_EDIT_SELECT


def _selected_id(raw_text: str, pending: dict[str, Any]) -> str | None:
    choices = pending.get("choices", [])
    if not raw_text.isdigit():
        return None
    selected = int(raw_text)
    if selected < 1 or selected > len(choices):
        return None
    return str(choices[selected - 1])


async def edit_select(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_EDIT_KEY, {})
    record_id = _selected_id(_message_text(update), pending)
    if record_id is None:
        await update.effective_message.reply_text(
            f"Please send a number between 1 and {len(pending.get('choices', []))}."
        )
        return STATE_EDIT_SELECT

    try:
        record = deps.store.get(record_id)
    except AgendaError:
        context.user_data.pop(PENDING_EDIT_KEY, None)
        await update.effective_message.reply_text("That birthday no longer exists. Send /edit to start again.")
        return ConversationHandler.END

    context.user_data[PENDING_EDIT_KEY] = {"id": record.id, "fields": {}}
    await update.effective_message.reply_text(f"Step 2/5: Send a new name, or skip to keep \"{record.name}\".")
    return STATE_EDIT_NAME


def _pending_edit(context: CallbackContext) -> dict[str, Any] | None:
    pending = context.user_data.get(PENDING_EDIT_KEY)
    if not isinstance(pending, dict) or "id" not in pending:
        return None
    return pending


async def _expired(update: Update) -> int:
    await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
    return ConversationHandler.END


async def edit_name(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    raw_text = _message_text(update)
    if not _is_skip(raw_text):
        if not raw_text:
            await update.effective_message.reply_text("Name cannot be empty. Send a name or skip.")
            return STATE_EDIT_NAME
        pending["fields"]["name"] = raw_text

    await update.effective_message.reply_text("Step 3/5: Send a new email, or skip to keep the current one.")
    return STATE_EDIT_EMAIL


async def edit_email(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    raw_text = _message_text(update)
    if not _is_skip(raw_text):
        if not raw_text:
            await update.effective_message.reply_text("Email cannot be empty. Send an email or skip.")
            return STATE_EDIT_EMAIL
        pending["fields"]["email"] = raw_text

    await update.effective_message.reply_text(
        "Step 4/5: Send a new password, /clear to remove it, or /skip to keep it."
    )
    return STATE_EDIT_PASSWORD


async def edit_password(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    pending["new_password"] = _message_text(update)
    await update.effective_message.reply_text("Send the new password again to confirm it.")
    return STATE_EDIT_PASSWORD_CONFIRM


async def edit_password_skip(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    if _pending_edit(context) is None:
        return await _expired(update)

    await update.effective_message.reply_text("Step 5/5: Send a new birthdate as YYYY-MM-DD, or skip.")
    return STATE_EDIT_BIRTHDATE


async def edit_password_clear(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    pending["fields"]["password"] = ""
    await update.effective_message.reply_text("Step 5/5: Send a new birthdate as YYYY-MM-DD, or skip.")
    return STATE_EDIT_BIRTHDATE


async def edit_password_confirm(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    new_password = pending.pop("new_password", None)
    if _message_text(update) != new_password:
        await update.effective_message.reply_text(
            "Passwords do not match. Step 4/5: Send a new password, /clear, or /skip."
        )
        return STATE_EDIT_PASSWORD

    pending["fields"]["password"] = new_password
    await update.effective_message.reply_text("Step 5/5: Send a new birthdate as YYYY-MM-DD, or skip.")
    return STATE_EDIT_BIRTHDATE


async def edit_birthdate(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    raw_text = _message_text(update)
    if not _is_skip(raw_text):
        try:
            pending["fields"]["birthdate"] = parse_birthdate(raw_text).isoformat()
        except ValidationError as exc:
            await update.effective_message.reply_text(f"{exc}. Please send YYYY-MM-DD, or skip.")
            return STATE_EDIT_BIRTHDATE

    fields = pending["fields"]
    changes = [
        f"{label}: {fields[key]}"
        for key, label in (("name", "Name"), ("email", "Email"), ("birthdate", "Birthdate"))
        if key in fields
    ]
    if "password" in fields:
        changes.append("Password: changed")
    summary = "\n".join(changes) if changes else "(no changes)"
    await update.effective_message.reply_text(
        f"Confirm these edits:\n{summary}\n\nReply with yes to save, or no to cancel."
    )
    return STATE_EDIT_CONFIRM


async def edit_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END
    pending = _pending_edit(context)
    if pending is None:
        return await _expired(update)

    decision = _message_text(update).lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_EDIT_CONFIRM

    context.user_data.pop(PENDING_EDIT_KEY, None)
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        deps.store.update(pending["id"], **pending["fields"])
    except AgendaError as exc:
        await update.effective_message.reply_text(f"Could not save: {exc}")
        return ConversationHandler.END

    await update.effective_message.reply_text("Birthday updated.")
    return ConversationHandler.END


async def delete_start(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    records = sorted_by_upcoming(deps.store.list())
    if not records:
        await update.effective_message.reply_text("No birthdays are currently tracked.")
        return ConversationHandler.END

    context.user_data[PENDING_DELETE_KEY] = {"choices": [record.id for record in records]}
    await update.effective_message.reply_text(_render_selection("Delete a birthday.", records))
    return STATE_DELETE_SELECT


async def delete_select(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_DELETE_KEY, {})
    record_id = _selected_id(_message_text(update), pending)
    if record_id is None:
        await update.effective_message.reply_text(
            f"Please send a number between 1 and {len(pending.get('choices', []))}."
        )
        return STATE_DELETE_SELECT

    try:
        record = deps.store.get(record_id)
    except AgendaError:
        context.user_data.pop(PENDING_DELETE_KEY, None)
        await update.effective_message.reply_text("That birthday no longer exists.")
        return ConversationHandler.END

    context.user_data[PENDING_DELETE_KEY] = {"id": record.id}
    await update.effective_message.reply_text(f"Really delete {record.name}? Reply with yes or no.")
    return STATE_DELETE_CONFIRM


async def delete_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = _message_text(update).lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_DELETE_CONFIRM

    pending = context.user_data.pop(PENDING_DELETE_KEY, {})
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        deps.store.delete(pending.get("id", ""))
    except AgendaError as exc:
        await update.effective_message.reply_text(f"Could not delete: {exc}")
        return ConversationHandler.END

    await update.effective_message.reply_text("Birthday deleted.")
    return ConversationHandler.END


async def cancel_command(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context, require_login=False) is None:
        return ConversationHandler.END

    for key in (PENDING_ADD_KEY, PENDING_EDIT_KEY, PENDING_DELETE_KEY):
        context.user_data.pop(key, None)
    await update.effective_message.reply_text("Wizard canceled.")
    return ConversationHandler.END


def _text_step(callback) -> list[MessageHandler]:
    return [MessageHandler(filters.TEXT & ~filters.COMMAND, callback)]


def build_handlers() -> list:
    add_conversation = ConversationHandler(
        entry_points=[CommandHandler("add", add_start)],
        states={
            STATE_ADD_NAME: _text_step(add_name),
            STATE_ADD_EMAIL: _text_step(add_email),
            STATE_ADD_PASSWORD: [CommandHandler("skip", add_password_skip), *_text_step(add_password)],
            STATE_ADD_PASSWORD_CONFIRM: _text_step(add_password_confirm),
            STATE_ADD_BIRTHDATE: _text_step(add_birthdate),
            STATE_ADD_CONFIRM: _text_step(add_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="add_record_conversation",
        persistent=False,
    )

    edit_conversation = ConversationHandler(
        entry_points=[CommandHandler("edit", edit_start)],
        states={
            STATE_EDIT_SELECT: _text_step(edit_select),
            STATE_EDIT_NAME: _text_step(edit_name),
            STATE_EDIT_EMAIL: _text_step(edit_email),
            STATE_EDIT_PASSWORD: [
                CommandHandler("skip", edit_password_skip),
                CommandHandler("clear", edit_password_clear),
                *_text_step(edit_password),
            ],
            STATE_EDIT_PASSWORD_CONFIRM: _text_step(edit_password_confirm),
            STATE_EDIT_BIRTHDATE: _text_step(edit_birthdate),
            STATE_EDIT_CONFIRM: _text_step(edit_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="edit_record_conversation",
        persistent=False,
    )

    delete_conversation = ConversationHandler(
        entry_points=[CommandHandler("delete", delete_start)],
        states={
            STATE_DELETE_SELECT: _text_step(delete_select),
            STATE_DELETE_CONFIRM: _text_step(delete_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="delete_record_conversation",
        persistent=False,
    )

    # conversations must precede the standalone /cancel or their fallback never runs
    return [
        add_conversation,
        edit_conversation,
        delete_conversation,
        CommandHandler("help", help_command),
        CommandHandler("start", help_command),
        CommandHandler("register", register_command),
        CommandHandler("login", login_command),
        CommandHandler("logout", logout_command),
        CommandHandler("list", list_command),
        CommandHandler("next", next_command),
        CommandHandler("today", today_command),
        CommandHandler("calendar", calendar_command),
        CommandHandler("day", day_command),
        CommandHandler("cancel", cancel_command),
    ]
