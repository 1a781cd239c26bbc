from __future__ import annotations

import html
import logging
import re
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

from birthday_tracker.calendar_view import (
    counts_for_month,
    dates_with_events,
    group_by_day,
    groups_for_month,
    render_month_grid,
)
from birthday_tracker.countdown import format_countdown
from birthday_tracker.date_logic import (
    next_occurrence,
    now_in,
    occurrence_start,
    parse_event_date,
    validate_month_day,
)
from birthday_tracker.errors import (
    InfrastructureError,
    RecordNotFoundError,
    ValidationError,
    WishConflictError,
)
from birthday_tracker.listings import UpcomingRow, list_this_month, list_today, sort_by_proximity
from birthday_tracker.live_countdown import start_live_countdown, stop_live_countdown
from birthday_tracker.models import AppConfig, EventRecord
from birthday_tracker.record_store import RecordStore, new_record
from birthday_tracker.settings import Settings
from birthday_tracker.wish_ledger import WishLedger

LOGGER = logging.getLogger(__name__)

(
    STATE_ADD_NAME,
    STATE_ADD_DATE,
    STATE_ADD_EMAIL,
    STATE_ADD_PHONE,
    STATE_ADD_NOTES,
    STATE_ADD_CONFIRM,
    STATE_EDIT_SELECT,
    STATE_EDIT_NAME,
    STATE_EDIT_DATE,
    STATE_EDIT_EMAIL,
    STATE_EDIT_PHONE,
    STATE_EDIT_NOTES,
    STATE_EDIT_CONFIRM,
) = range(13)

PENDING_ADD_KEY = "pending_add_birthday"
PENDING_EDIT_KEY = "pending_edit_birthday"

GENERIC_ERROR_TEXT = "Something went wrong. Please try again later."
DATE_FORMAT_HINT = "Please send a date like 1990-03-14."


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    config: AppConfig
    store: RecordStore
    ledger: WishLedger


def is_authorized(update: Update, settings: Settings) -> bool:
    effective_user = update.effective_user
    if effective_user is None:
        return False
    return effective_user.id in settings.telegram_allowed_user_ids


def owner_id_for(update: Update) -> str:
    return str(update.effective_user.id)


async def _deny_unauthorized(update: Update) -> None:
    if update.effective_message:
        await update.effective_message.reply_text("This bot is restricted to its configured users.")


def _deps(context: CallbackContext) -> HandlerDependencies:
    return context.application.bot_data["handler_deps"]


def _reference(deps: HandlerDependencies) -> tuple[AppConfig, datetime]:
    return deps.config, now_in(deps.config.timezone)


def resolve_record_ref(records: list[EventRecord], ref: str) -> EventRecord:
    """Find a record by full id or by an unambiguous id prefix."""
    cleaned = ref.strip().lower()
    if not cleaned:
        raise RecordNotFoundError(ref)

    for record in records:
        if record.id.lower() == cleaned:
            return record

    matches = [record for record in records if record.id.lower().startswith(cleaned)]
    if len(matches) != 1:
        raise RecordNotFoundError(ref)
    return matches[0]


def parse_day_key_text(raw_text: str) -> tuple[int, int]:
    match = re.fullmatch(r"(\d{1,2})-(\d{1,2})", raw_text.strip())
    if not match:
        raise ValidationError("Day must use MM-DD")
    month = int(match.group(1))
    day = int(match.group(2))
    validate_month_day(month, day)
    return month, day


def parse_month_text(raw_text: str) -> tuple[int, int]:
    match = re.fullmatch(r"(\d{4})-(\d{1,2})", raw_text.strip())
    if not match:
        raise ValidationError("Month must use YYYY-MM")
    year = int(match.group(1))
    month = int(match.group(2))
    if month < 1 or month > 12:
        raise ValidationError(f"Invalid month: {month}")
    return year, month


def _render_help() -> str:
    return (
        "Commands:\n"
        "/list - All birthdays, soonest first\n"
        "/today - Birthdays happening today\n"
        "/month - Birthdays this month\n"
        "/calendar [YYYY-MM] - Month grid with birthday counts\n"
        "/day MM-DD - Birthdays on one day of the year\n"
        "/wish <id> - Send this year's birthday wish\n"
        "/countdown <id> - Live countdown to the next birthday\n"
        "/stop - Stop the live countdown\n"
        "/add - Start the interactive birthday wizard\n"
        "/edit - Interactively edit an existing birthday\n"
        "/delete <id> - Remove a birthday\n"
        "/cancel - Cancel the active add/edit wizard\n"
        "/help - Show this help message\n\n"
        "Dates use ISO format, e.g. 1990-03-14.\n"
        "<id> is the short code shown in brackets in /list."
    )


def _render_row(index: int, row: UpcomingRow) -> list[str]:
    details = [
        "Today!" if row.is_today else f"In {row.days_until}d",
        f"Next {row.next_date.isoformat()}",
    ]
    if not row.is_today:
        details.append(format_countdown(row.countdown))
    if row.turning_age is not None:
        details.append(f"Turning {row.turning_age}")
    details.append("Wished ✓" if row.wished_this_year else "Not wished yet")
    return [
        f"{index}. {row.record.name} [{row.record.short_id}]",
        f"   {' | '.join(details)}",
    ]


def _render_rows(title: str, rows: list[UpcomingRow], subtitle: str | None = None) -> str:
    lines = [f"{title} ({len(rows)})"]
    if subtitle:
        lines.append(subtitle)
    for index, row in enumerate(rows, start=1):
        lines.extend(_render_row(index, row))
        lines.append("")
    return "\n".join(lines).rstrip()


def _render_list_message(rows: list[UpcomingRow]) -> str:
    return _render_rows("Tracked birthdays", rows, subtitle="Sorted by soonest:")


def _render_calendar(
    year: int,
    month: int,
    records: list[EventRecord],
    config: AppConfig,
    today: date,
) -> str:
    groups = group_by_day(records)
    counts = counts_for_month(groups, year, month, config.leap_day_rule)
    grid = render_month_grid(year, month, counts, today=today)

    lines = [f"<pre>{html.escape(grid)}</pre>"]
    event_days = [
        shown for shown in dates_with_events(records, year, config.leap_day_rule) if shown.month == month
    ]
    if not event_days:
        lines.append("No birthdays this month.")
        return "\n".join(lines)

    lines.append(f"Days with birthdays: {len(event_days)}")
    for shown, group in groups_for_month(groups, year, month, config.leap_day_rule):
        names = ", ".join(html.escape(record.name) for record in group.records)
        lines.append(f"{shown:%m-%d} ({group.display_count}): {names}")
    return "\n".join(lines)


def render_wish_conflict(exc: WishConflictError) -> str:
    return (
        f"Already sent this year (last sent {exc.last_sent.isoformat(timespec='seconds')}).\n"
        f"Again available in {exc.available_year}."
    )


def _format_record(record: EventRecord) -> str:
    return (
        f"Name: {record.name}\n"
        f"Date: {record.occurs_on.isoformat()}\n"
        f"Email: {record.email or '(none)'}\n"
        f"Phone: {record.phone or '(none)'}\n"
        f"Notes: {record.notes or '(none)'}"
    )


def _is_skip(value: str) -> bool:
    return value.strip().lower() in {"skip", "keep", "same", "-"}


async def help_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return
    await update.effective_message.reply_text(_render_help())


async def list_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    records = deps.store.list_records(owner_id_for(update))
    if not records:
        await update.effective_message.reply_text("No birthdays are currently tracked.")
        return

    config, now = _reference(deps)
    rows = sort_by_proximity(records, now, config.leap_day_rule)
    await update.effective_message.reply_text(_render_list_message(rows))


async def today_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    config, now = _reference(deps)
    listing = list_today(deps.store.list_records(owner_id_for(update)), now)
    if listing.count == 0:
        await update.effective_message.reply_text("No birthdays today.")
        return

    rows = sort_by_proximity(listing.items, now, config.leap_day_rule)
    await update.effective_message.reply_text(_render_rows("Birthdays today", rows))


async def month_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    config, now = _reference(deps)
    listing = list_this_month(deps.store.list_records(owner_id_for(update)), now)
    if listing.count == 0:
        await update.effective_message.reply_text("No birthdays this month!")
        return

    rows = sort_by_proximity(listing.items, now, config.leap_day_rule)
    await update.effective_message.reply_text(_render_rows(f"Birthdays in {now:%B}", rows))


async def calendar_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    config, now = _reference(deps)
    year, month = now.year, now.month
    if context.args:
        try:
            year, month = parse_month_text(context.args[0])
        except ValidationError as exc:
            await update.effective_message.reply_text(f"{exc}. Example: /calendar 2026-03")
            return

    records = deps.store.list_records(owner_id_for(update))
    await update.effective_message.reply_text(
        _render_calendar(year, month, records, config, now.date()),
        parse_mode=ParseMode.HTML,
    )


async def day_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    try:
        key = parse_day_key_text(context.args[0] if context.args else "")
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. Example: /day 03-14")
        return

    config, now = _reference(deps)
    group = group_by_day(deps.store.list_records(owner_id_for(update))).get(key)
    if group is None:
        await update.effective_message.reply_text(f"No birthdays on {key[0]:02d}-{key[1]:02d}.")
        return

    rows = sort_by_proximity(group.records, now, config.leap_day_rule)
    await update.effective_message.reply_text(
        _render_rows(f"Birthdays on {key[0]:02d}-{key[1]:02d}", rows)
    )


async def wish_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    if not context.args:
        await update.effective_message.reply_text("Usage: /wish <id>")
        return

    owner_id = owner_id_for(update)
    try:
        record = resolve_record_ref(deps.store.list_records(owner_id), context.args[0])
        _config, now = _reference(deps)
        receipt = deps.ledger.attempt_send(owner_id, record.id, now)
    except RecordNotFoundError:
        await update.effective_message.reply_text(f"No birthday matches {context.args[0]!r}.")
        return
    except WishConflictError as exc:
        await update.effective_message.reply_text(render_wish_conflict(exc))
        return
    except InfrastructureError:
        await update.effective_message.reply_text(GENERIC_ERROR_TEXT)
        return

    await update.effective_message.reply_text(
        f"🎉 Happy Birthday wish sent to {receipt.record.name}.\n"
        f"Sent at {receipt.sent_at.isoformat(timespec='seconds')}"
    )


async def countdown_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    if not context.args:
        await update.effective_message.reply_text("Usage: /countdown <id>")
        return

    try:
        record = resolve_record_ref(deps.store.list_records(owner_id_for(update)), context.args[0])
    except RecordNotFoundError:
        await update.effective_message.reply_text(f"No birthday matches {context.args[0]!r}.")
        return

    config, now = _reference(deps)
    next_date = next_occurrence(record.occurs_on, now, config.leap_day_rule)
    target = occurrence_start(next_date, ZoneInfo(config.timezone))

    message = await update.effective_message.reply_text(
        f"⏳ {record.name}'s birthday\nDate: {next_date.isoformat()}\nStarting countdown..."
    )
    start_live_countdown(
        context.job_queue,
        chat_id=message.chat_id,
        message_id=message.message_id,
        record_name=record.name,
        timezone=config.timezone,
        target=target,
        now=now,
        refresh_seconds=config.countdown_refresh_seconds,
        max_minutes=config.countdown_max_minutes,
    )


async def stop_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    stopped = stop_live_countdown(context.job_queue, update.effective_chat.id)
    if stopped:
        await update.effective_message.reply_text("Countdown stopped.")
    else:
        await update.effective_message.reply_text("No countdown is running.")


async def delete_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return

    if not context.args:
        await update.effective_message.reply_text("Usage: /delete <id>")
        return

    owner_id = owner_id_for(update)
    try:
        record = resolve_record_ref(deps.store.list_records(owner_id), context.args[0])
        deps.store.delete_record(owner_id, record.id)
    except RecordNotFoundError:
        await update.effective_message.reply_text(f"No birthday matches {context.args[0]!r}.")
        return

    await update.effective_message.reply_text(f"Deleted {record.name}.")


async def add_start(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    context.user_data[PENDING_ADD_KEY] = {}
    await update.effective_message.reply_text(
        "Add birthday wizard started.\nStep 1/6: Send the person's name."
    )
    return STATE_ADD_NAME


async def add_name(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    name = (update.effective_message.text or "").strip()
    if len(name) < 2:
        await update.effective_message.reply_text("Name must be at least 2 characters. Please send a name.")
        return STATE_ADD_NAME

    context.user_data[PENDING_ADD_KEY] = {"name": name}
    await update.effective_message.reply_text("Step 2/6: Send the birthday as YYYY-MM-DD.")
    return STATE_ADD_DATE


async def add_date(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    try:
        occurs_on = parse_event_date(update.effective_message.text or "", ZoneInfo(deps.config.timezone))
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. {DATE_FORMAT_HINT}")
        return STATE_ADD_DATE

    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["occurs_on"] = occurs_on.isoformat()
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text("Step 3/6: Send an email address, or skip.")
    return STATE_ADD_EMAIL


async def add_email(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["email"] = None if _is_skip(raw_text) else raw_text
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text("Step 4/6: Send a phone number, or skip.")
    return STATE_ADD_PHONE


async def add_phone(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["phone"] = None if _is_skip(raw_text) else raw_text
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text("Step 5/6: Send notes for this birthday, or skip.")
    return STATE_ADD_NOTES


async def add_notes(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["notes"] = None if _is_skip(raw_text) else raw_text
    context.user_data[PENDING_ADD_KEY] = pending

    summary = (
        "Step 6/6: Confirm this entry:\n"
        f"Name: {pending.get('name')}\n"
        f"Date: {pending.get('occurs_on')}\n"
        f"Email: {pending.get('email') or '(none)'}\n"
        f"Phone: {pending.get('phone') or '(none)'}\n"
        f"Notes: {pending.get('notes') or '(none)'}\n\n"
        "Reply with yes to save, or no to cancel."
    )
    await update.effective_message.reply_text(summary)
    return STATE_ADD_CONFIRM


async def add_confirm(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_ADD_CONFIRM

    if decision in {"no", "n"}:
        context.user_data.pop(PENDING_ADD_KEY, None)
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    pending = context.user_data.pop(PENDING_ADD_KEY, {})
    try:
        record = new_record(
            owner_id_for(update),
            str(pending["name"]),
            date.fromisoformat(str(pending["occurs_on"])),
            email=pending.get("email"),
            phone=pending.get("phone"),
            notes=pending.get("notes"),
        )
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. Nothing was saved; send /add to retry.")
        return ConversationHandler.END

    deps.store.add_record(record)
    await update.effective_message.reply_text(f"Birthday saved [{record.short_id}].")
    LOGGER.info("Added birthday for %s", record.name)
    return ConversationHandler.END


def _render_edit_selection(records: list[EventRecord]) -> str:
    lines = [
        "Edit birthday wizard started.",
        "Step 1/7: Reply with the number of the entry to edit:",
    ]
    for index, record in enumerate(records, start=1):
        lines.append(f"{index}. {record.name} | {record.occurs_on.isoformat()}")
    return "\n".join(lines)


def _render_edit_summary(pending: dict[str, Any]) -> str:
    return (
        "Step 7/7: Confirm these edits:\n"
        f"Name: {pending['original_name']} -> {pending['name']}\n"
        f"Date: {pending['original_occurs_on']} -> {pending['occurs_on']}\n"
        f"Email: {pending['original_email'] or '(none)'} -> {pending['email'] or '(none)'}\n"
        f"Phone: {pending['original_phone'] or '(none)'} -> {pending['phone'] or '(none)'}\n"
        f"Notes: {pending['original_notes'] or '(none)'} -> {pending['notes'] or '(none)'}\n\n"
        "Reply with yes to save, or no to cancel."
    )


def _pending_edit(context: CallbackContext) -> dict[str, Any] | None:
    pending = context.user_data.get(PENDING_EDIT_KEY)
    if not isinstance(pending, dict) or "record_id" not in pending:
        return None
    return pending


async def edit_start(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    records = deps.store.list_records(owner_id_for(update))
    if not records:
        await update.effective_message.reply_text("No birthdays are currently tracked.")
        return ConversationHandler.END

    context.user_data[PENDING_EDIT_KEY] = {"choices": [record.id for record in records]}
    await update.effective_message.reply_text(_render_edit_selection(records))
    return STATE_EDIT_SELECT


async def edit_select(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    if not raw_text.isdigit():
        await update.effective_message.reply_text("Please send the entry number shown in the list.")
        return STATE_EDIT_SELECT

    choices = context.user_data.get(PENDING_EDIT_KEY, {}).get("choices", [])
    selected = int(raw_text)
    if selected < 1 or selected > len(choices):
        await update.effective_message.reply_text(f"Entry must be between 1 and {len(choices)}.")
        return STATE_EDIT_SELECT

    try:
        record = deps.store.get_record(owner_id_for(update), choices[selected - 1])
    except RecordNotFoundError:
        context.user_data.pop(PENDING_EDIT_KEY, None)
        await update.effective_message.reply_text("That birthday no longer exists. Send /edit to start again.")
        return ConversationHandler.END

    context.user_data[PENDING_EDIT_KEY] = {
        "record_id": record.id,
        "original_name": record.name,
        "original_occurs_on": record.occurs_on.isoformat(),
        "original_email": record.email,
        "original_phone": record.phone,
        "original_notes": record.notes,
        "name": record.name,
        "occurs_on": record.occurs_on.isoformat(),
        "notes": record.notes,
        "email": record.email,
        "phone": record.phone,
    }
    await update.effective_message.reply_text(
        f"Step 2/7: Send a new name, or skip to keep \"{record.name}\"."
    )
    return STATE_EDIT_NAME


async def edit_name(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    if not _is_skip(raw_text):
        if len(raw_text) < 2:
            await update.effective_message.reply_text("Name must be at least 2 characters. Send a name or skip.")
            return STATE_EDIT_NAME
        pending["name"] = raw_text

    await update.effective_message.reply_text(
        "Step 3/7: Send a new date as YYYY-MM-DD,\n"
        f"or skip to keep {pending['occurs_on']}."
    )
    return STATE_EDIT_DATE


async def edit_date(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    raw_text = (update.effective_message.text or "").strip()
    if not _is_skip(raw_text):
        try:
            occurs_on = parse_event_date(raw_text, ZoneInfo(deps.config.timezone))
        except ValidationError as exc:
            await update.effective_message.reply_text(f"{exc}. {DATE_FORMAT_HINT} Or skip.")
            return STATE_EDIT_DATE
        pending["occurs_on"] = occurs_on.isoformat()

    await update.effective_message.reply_text(
        "Step 4/7: Send a new email address, skip to keep the current one, or clear to remove it."
    )
    return STATE_EDIT_EMAIL


def _apply_optional_edit(pending: dict[str, Any], key: str, raw_text: str) -> None:
    if raw_text.lower() == "clear":
        pending[key] = None
    elif not _is_skip(raw_text):
        pending[key] = raw_text


async def edit_email(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    _apply_optional_edit(pending, "email", (update.effective_message.text or "").strip())
    await update.effective_message.reply_text(
        "Step 5/7: Send a new phone number, skip to keep the current one, or clear to remove it."
    )
    return STATE_EDIT_PHONE


async def edit_phone(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    _apply_optional_edit(pending, "phone", (update.effective_message.text or "").strip())
    await update.effective_message.reply_text(
        "Step 6/7: Send new notes, skip to keep the current ones, or clear to remove them."
    )
    return STATE_EDIT_NOTES


async def edit_notes(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    _apply_optional_edit(pending, "notes", (update.effective_message.text or "").strip())
    await update.effective_message.reply_text(_render_edit_summary(pending))
    return STATE_EDIT_CONFIRM


async def edit_confirm(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    pending = _pending_edit(context)
    if pending is None:
        await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_EDIT_CONFIRM

    context.user_data.pop(PENDING_EDIT_KEY, None)
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        record = deps.store.update_details(
            owner_id_for(update),
            str(pending["record_id"]),
            name=str(pending["name"]),
            occurs_on=date.fromisoformat(str(pending["occurs_on"])),
            email=pending.get("email"),
            phone=pending.get("phone"),
            notes=pending.get("notes"),
        )
    except RecordNotFoundError:
        await update.effective_message.reply_text(
            "Could not save because the birthday was removed. Send /edit and try again."
        )
        return ConversationHandler.END
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. Nothing was saved; send /edit to retry.")
        return ConversationHandler.END

    await update.effective_message.reply_text(f"Birthday updated.\n{_format_record(record)}")
    return ConversationHandler.END


async def cancel_command(update: Update, context: CallbackContext) -> int:
    deps = _deps(context)
    if not is_authorized(update, deps.settings):
        await _deny_unauthorized(update)
        return ConversationHandler.END

    context.user_data.pop(PENDING_ADD_KEY, None)
    context.user_data.pop(PENDING_EDIT_KEY, None)
    await update.effective_message.reply_text("Wizard canceled.")
    return ConversationHandler.END


async def error_handler(update: object, context: CallbackContext) -> None:
    LOGGER.error("Unhandled error while processing an update", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(GENERIC_ERROR_TEXT)


def build_handlers() -> list:
    text_only = filters.TEXT & ~filters.COMMAND

    add_conversation = ConversationHandler(
        entry_points=[CommandHandler("add", add_start)],
        states={
            STATE_ADD_NAME: [MessageHandler(text_only, add_name)],
            STATE_ADD_DATE: [MessageHandler(text_only, add_date)],
            STATE_ADD_EMAIL: [MessageHandler(text_only, add_email)],
            STATE_ADD_PHONE: [MessageHandler(text_only, add_phone)],
            STATE_ADD_NOTES: [MessageHandler(text_only, add_notes)],
            STATE_ADD_CONFIRM: [MessageHandler(text_only, add_confirm)],
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="add_birthday_conversation",
        persistent=False,
    )

    edit_conversation = ConversationHandler(
        entry_points=[CommandHandler("edit", edit_start)],
        states={
            STATE_EDIT_SELECT: [MessageHandler(text_only, edit_select)],
            STATE_EDIT_NAME: [MessageHandler(text_only, edit_name)],
            STATE_EDIT_DATE: [MessageHandler(text_only, edit_date)],
            STATE_EDIT_EMAIL: [MessageHandler(text_only, edit_email)],
            STATE_EDIT_PHONE: [MessageHandler(text_only, edit_phone)],
            STATE_EDIT_NOTES: [MessageHandler(text_only, edit_notes)],
            STATE_EDIT_CONFIRM: [MessageHandler(text_only, edit_confirm)],
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="edit_birthday_conversation",
        persistent=False,
    )

    return [
        CommandHandler(["help", "start"], help_command),
        CommandHandler("list", list_command),
        CommandHandler("today", today_command),
        CommandHandler("month", month_command),
        CommandHandler("calendar", calendar_command),
        CommandHandler("day", day_command),
        CommandHandler("wish", wish_command),
        CommandHandler("countdown", countdown_command),
        CommandHandler("stop", stop_command),
        CommandHandler("delete", delete_command),
        CommandHandler("cancel", cancel_command),
        add_conversation,
        edit_conversation,
    ]
