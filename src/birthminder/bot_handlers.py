from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from telegram import Update
from telegram.ext import CallbackContext, CommandHandler

from birthminder.coordinator import BirthdayListRow, ReminderCoordinator
from birthminder.date_logic import format_date, is_today, validate_month_day
from birthminder.models import REMINDER_DAYS_OPTIONS, BirthdayRecord, PermissionState
from birthminder.preference_store import PreferenceSaveError
from birthminder.settings import Settings

LOGGER = logging.getLogger(__name__)

NO_GROUP_WORDS = {"none", "-", "clear"}


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    coordinator: ReminderCoordinator
    today_provider: Callable[[], date]


def is_authorized(update: Update, settings: Settings) -> bool:
    effective_user = update.effective_user
    effective_chat = update.effective_chat
    if effective_user is None or effective_chat is None:
        return False
    return (
        effective_user.id == settings.telegram_allowed_user_id
        and effective_chat.id == settings.telegram_allowed_chat_id
    )


async def _deny_unauthorized(update: Update) -> None:
    if update.effective_message:
        await update.effective_message.reply_text("This bot is restricted to its configured owner.")


def parse_birthday_text(raw_text: str) -> tuple[int, int, int | None]:
    value = raw_text.strip()

    full_match = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", value)
    if full_match:
        year = int(full_match.group(1))
        month = int(full_match.group(2))
        day = int(full_match.group(3))
        date(year, month, day)
        return month, day, year

    short_match = re.fullmatch(r"(\d{2})-(\d{2})", value)
    if short_match:
        month = int(short_match.group(1))
        day = int(short_match.group(2))
        validate_month_day(month, day, allow_feb_29=True)
        return month, day, None

    raise ValueError("Birthday must use YYYY-MM-DD or MM-DD")


def parse_days_before(raw_text: str) -> int:
    text = raw_text.strip()
    if not text.isdigit() or int(text) not in REMINDER_DAYS_OPTIONS:
        options = ", ".join(str(option) for option in REMINDER_DAYS_OPTIONS)
        raise ValueError(f"Choose one of: {options}")
    return int(text)


def parse_group_text(raw_text: str) -> str | None:
    value = " ".join(raw_text.split())
    if not value or value.lower() in NO_GROUP_WORDS:
        return None
    return value


def _render_help() -> str:
    return (
        "Commands:\n"
        "/add <name> <YYYY-MM-DD|MM-DD> - Track a birthday\n"
        "/remove <number> - Stop tracking the numbered entry from /list\n"
        "/list [group] - Show tracked birthdays and days until each\n"
        "/today - Show whose birthday it is today\n"
        "/search <text> - Find people by name\n"
        "/group <number> <name|none> - Put the numbered entry from /list in a group\n"
        "/groups - Show the groups in use\n"
        "/remind <0|1|3|7> - Days before a birthday to send a reminder\n"
        "/notifications <on|off> - Enable or disable notifications\n"
        "/help - Show this help message\n\n"
        "Every birthday gets a day-of alert at 08:00."
    )


def _render_list_message(rows: list[BirthdayListRow], days_before: int, permission: PermissionState) -> str:
    lines = [f"Tracked birthdays ({len(rows)})", "Sorted by soonest:"]

    for index, row in enumerate(rows, start=1):
        lines.append(f"{index}. {row.name}")
        details = [
            "Today" if row.days_until == 0 else f"In {row.days_until}d",
            format_date(row.next_date.month, row.next_date.day, row.next_date.year),
        ]
        if row.turning_age is not None:
            details.append(f"Turning {row.turning_age}")
        if row.group is not None:
            details.append(f"Group {row.group}")
        lines.append(f"   {' | '.join(details)}")
        lines.append("")

    reminder = "day-of only" if days_before == 0 else f"{days_before}d before + day-of"
    status = "on" if permission == PermissionState.GRANTED else "off"
    lines.append(f"Reminders: {reminder} | Notifications {status}")
    return "\n".join(lines).rstrip()


def _render_search_results(query: str, people: list[BirthdayRecord]) -> str:
    if not people:
        return f"No one matches '{query}'."

    lines = [f"Matches for '{query}' ({len(people)})"]
    for person in people:
        line = f"- {person.name}: {format_date(person.month, person.day, person.year)}"
        if person.group is not None:
            line += f" ({person.group})"
        lines.append(line)
    return "\n".join(lines)


def _selected_row(rows: list[BirthdayListRow], raw_index: str) -> BirthdayListRow | None:
    if not raw_index.isdigit() or not 1 <= int(raw_index) <= len(rows):
        return None
    return rows[int(raw_index) - 1]


async def help_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return
    await update.effective_message.reply_text(_render_help())


async def list_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    group = parse_group_text(" ".join(context.args or []))
    rows = deps.coordinator.upcoming(deps.today_provider(), group)
    if not rows:
        if group is None:
            await update.effective_message.reply_text("No birthdays are currently tracked.")
        else:
            await update.effective_message.reply_text(f"No birthdays in group '{group}'.")
        return

    message = _render_list_message(rows, deps.coordinator.days_before, deps.coordinator.permission)
    await update.effective_message.reply_text(message)


async def today_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    today = deps.today_provider()
    celebrating = [person.name for person in deps.coordinator.people() if is_today(person.month, person.day, today)]
    if not celebrating:
        await update.effective_message.reply_text("No birthdays today.")
        return
    await update.effective_message.reply_text("🎉 Birthdays today: " + ", ".join(sorted(celebrating)))


async def search_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    query = " ".join(context.args or [])
    if not query.strip():
        await update.effective_message.reply_text("Usage: /search <text>")
        return
    await update.effective_message.reply_text(_render_search_results(query, deps.coordinator.search(query)))


async def add_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    args = list(context.args or [])
    if len(args) < 2:
        await update.effective_message.reply_text("Usage: /add <name> <YYYY-MM-DD|MM-DD>")
        return

    try:
        month, day, year = parse_birthday_text(args[-1])
        record = await deps.coordinator.add_person(name=" ".join(args[:-1]), month=month, day=day, year=year)
    except ValueError as exc:
        await update.effective_message.reply_text(f"Invalid birthday: {exc}")
        return

    await update.effective_message.reply_text(
        f"Saved {record.name} ({format_date(record.month, record.day, record.year)})."
    )


async def remove_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    rows = deps.coordinator.upcoming(deps.today_provider())
    args = list(context.args or [])
    row = _selected_row(rows, args[0]) if len(args) == 1 else None
    if row is None:
        await update.effective_message.reply_text(f"Usage: /remove <1-{max(len(rows), 1)}> (numbers from /list)")
        return

    record = await deps.coordinator.remove_person(row.person_id)
    await update.effective_message.reply_text(f"Removed {record.name}.")


async def group_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    rows = deps.coordinator.upcoming(deps.today_provider())
    args = list(context.args or [])
    row = _selected_row(rows, args[0]) if len(args) >= 2 else None
    if row is None:
        await update.effective_message.reply_text(
            f"Usage: /group <1-{max(len(rows), 1)}> <name|none> (numbers from /list)"
        )
        return

    record = deps.coordinator.set_group(row.person_id, parse_group_text(" ".join(args[1:])))
    if record.group is None:
        await update.effective_message.reply_text(f"{record.name} is no longer in a group.")
    else:
        await update.effective_message.reply_text(f"{record.name} is now in group {record.group}.")


async def groups_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    groups = deps.coordinator.groups()
    if not groups:
        await update.effective_message.reply_text("No groups yet. Use /group to create one.")
        return
    await update.effective_message.reply_text("Groups: " + ", ".join(groups))


async def remind_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    args = list(context.args or [])
    try:
        days_before = parse_days_before(args[0] if args else "")
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    try:
        await deps.coordinator.set_days_before(days_before)
    except PreferenceSaveError:
        LOGGER.exception("Failed to save reminder preference")
        await update.effective_message.reply_text("Could not save your reminder setting. Please try again.")
        return

    if days_before == 0:
        await update.effective_message.reply_text("Reminders set to day-of only.")
    else:
        await update.effective_message.reply_text(f"You will be reminded {days_before} day(s) before each birthday.")


async def notifications_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    args = [arg.lower() for arg in context.args or []]
    if args == ["on"]:
        if await deps.coordinator.enable():
            await update.effective_message.reply_text("Notifications enabled.")
        else:
            await update.effective_message.reply_text("Notifications are still disabled.")
    elif args == ["off"]:
        await deps.coordinator.disable()
        await update.effective_message.reply_text("Notifications disabled. All scheduled alerts were removed.")
    else:
        status = "on" if deps.coordinator.permission == PermissionState.GRANTED else "off"
        await update.effective_message.reply_text(f"Notifications are {status}. Usage: /notifications <on|off>")


def build_handlers() -> list:
    return [
        CommandHandler("help", help_command),
        CommandHandler("start", help_command),
        CommandHandler("list", list_command),
        CommandHandler("today", today_command),
        CommandHandler("search", search_command),
        CommandHandler("add", add_command),
        CommandHandler("remove", remove_command),
        CommandHandler("group", group_command),
        CommandHandler("groups", groups_command),
        CommandHandler("remind", remind_command),
        CommandHandler("notifications", notifications_command),
    ]
