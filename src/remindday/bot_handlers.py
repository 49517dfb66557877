from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from telegram import Update
from telegram.ext import (
    CallbackContext,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from remindday.csv_codec import InvalidImportFileError
from remindday.date_logic import celebrates_on, days_until_next_occurrence, format_for_display
from remindday.models import BirthdayRecord, DecodeResult, ImportOutcome
from remindday.record_store import BirthdayStore, StoreError
from remindday.reminder_scheduler import ReminderScheduler, now_in_timezone
from remindday.settings import Settings
from remindday.transfer_service import BirthdayTransferService
from remindday.validation import (
    ValidationError,
    clean_name,
    clean_note,
    clean_notification_time,
    parse_birth_date,
)

LOGGER = logging.getLogger(__name__)

(
    STATE_ADD_NAME,
    STATE_ADD_BIRTHDAY,
    STATE_ADD_NOTE,
    STATE_ADD_TIME,
    STATE_ADD_CONFIRM,
    STATE_EDIT_SELECT,
    STATE_EDIT_NAME,
    STATE_EDIT_BIRTHDAY,
    STATE_EDIT_NOTE,
    STATE_EDIT_TIME,
    STATE_EDIT_CONFIRM,
    STATE_DELETE_SELECT,
    STATE_DELETE_CONFIRM,
    STATE_IMPORT_FILE,
    STATE_IMPORT_CONFIRM,
    STATE_SHOW_SELECT,
) = range(16)

PENDING_KEY = "pending_birthday"
PENDING_IMPORT_KEY = "pending_import"

YES = {"yes", "y"}
NO = {"no", "n"}


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings
    store: BirthdayStore
    scheduler: ReminderScheduler
    transfer: BirthdayTransferService


@dataclass(frozen=True)
class BirthdayListRow:
    name: str
    birth_date: str
    days_until: int
    note: str


def is_authorized(update: Update, settings: Settings) -> bool:
    effective_user = update.effective_user
    effective_chat = update.effective_chat
    if effective_user is None or effective_chat is None:
        return False
    return (
        effective_user.id == settings.telegram_allowed_user_id
        and effective_chat.id == settings.telegram_allowed_chat_id
    )


async def _authorized_deps(update: Update, context: CallbackContext) -> HandlerDependencies | None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    if is_authorized(update, deps.settings):
        return deps
    if update.effective_message:
        await update.effective_message.reply_text("This bot is restricted to its configured owner.")
    return None


def _is_skip(value: str) -> bool:
    return value.strip().lower() in {"skip", "keep", "same"}


def parse_birthday_text(raw_text: str) -> str:
    """Accept MM-DD, or YYYY-MM-DD with the year dropped, and return MM-DD."""
    value = raw_text.strip()
    full_match = re.fullmatch(r"\d{4}-(\d{2}-\d{2})", value)
    if full_match:
        date.fromisoformat(value)
        value = full_match.group(1)
    parse_birth_date(value)
    return value


def parse_note_text(raw_text: str) -> str:
    value = raw_text.strip()
    if value.lower() in {"-", "none", "skip"}:
        return ""
    return clean_note(value)


def parse_time_text(raw_text: str, default: str) -> str:
    value = raw_text.strip()
    if value.lower() in {"skip", "default"}:
        return default
    return clean_notification_time(value, default)


def build_list_rows(records: list[BirthdayRecord], now: datetime, leap_day_rule: str) -> list[BirthdayListRow]:
    rows = [
        BirthdayListRow(
            name=record.name,
            birth_date=record.birth_date,
            days_until=days_until_next_occurrence(record.birth_date, now, leap_day_rule),
            note=record.note,
        )
        for record in records
    ]
    rows.sort(key=lambda row: (row.days_until, row.name.lower()))
    return rows


def celebrating_today(records: list[BirthdayRecord], today: date, leap_day_rule: str) -> list[BirthdayRecord]:
    return sorted(
        (record for record in records if celebrates_on(record.birth_date, today, leap_day_rule)),
        key=lambda record: record.name.lower(),
    )


def _render_help() -> str:
    return (
        "Commands:\n"
        "/list - Show upcoming birthdays\n"
        "/today - Show today's birthdays\n"
        "/show - Show one birthday in detail\n"
        "/add - Add a birthday\n"
        "/edit - Edit a birthday\n"
        "/delete - Delete a birthday\n"
        "/export - Export all birthdays as CSV\n"
        "/import - Import birthdays from a CSV file\n"
        "/reminders - Show how many reminders are scheduled\n"
        "/clearreminders - Cancel all scheduled reminders\n"
        "/cancel - Cancel the active wizard\n\n"
        "Birthday format: MM-DD (e.g. 03-14)\n"
        "Reminder time format: HH:MM (e.g. 09:00)"
    )


def _render_list_message(rows: list[BirthdayListRow]) -> str:
    todays = [row for row in rows if row.days_until == 0]
    upcoming = [row for row in rows if row.days_until > 0]
    lines: list[str] = []

    if todays:
        lines.append("🎉 Today's Birthdays!")
        for row in todays:
            lines.append(f"- {row.name}")
        lines.append("")

    lines.append(f"Upcoming birthdays ({len(upcoming)})")
    for index, row in enumerate(upcoming, start=1):
        when = "tomorrow" if row.days_until == 1 else f"in {row.days_until}d"
        lines.append(f"{index}. {row.name} | {format_for_display(row.birth_date)} | {when}")
        if row.note:
            lines.append(f"   {row.note}")

    return "\n".join(lines).rstrip()


def _render_selection(records: list[BirthdayRecord], title: str) -> str:
    lines = [title, "Reply with the number of the entry:"]
    for index, record in enumerate(records, start=1):
        lines.append(f"{index}. {record.name} | {record.birth_date} | {record.notification_time}")
    return "\n".join(lines)


def _render_summary(pending: dict[str, Any], step: str) -> str:
    note = pending.get("note") or "(none)"
    return (
        f"{step}: Confirm this entry:\n"
        f"Name: {pending['name']}\n"
        f"Birthday: {pending['birth_date']} ({format_for_display(pending['birth_date'])})\n"
        f"Note: {note}\n"
        f"Reminder time: {pending['notification_time']}\n\n"
        "Reply with yes to save, or no to cancel."
    )


def greeting_text(name: str) -> str:
    return f"🎉 Happy Birthday {name}! Hope you have a wonderful day! 🎂"


def _render_countdown(days_until: int) -> str:
    if days_until == 0:
        return "Today is the birthday!"
    if days_until == 1:
        return "Tomorrow is the birthday!"
    return f"{days_until} days until birthday"


def _render_detail(record: BirthdayRecord, days_until: int) -> str:
    """Detail card for one birthday, followed by a greeting ready to forward."""
    note = record.note or "(none)"
    return (
        f"{record.name}\n"
        f"Birthday: {format_for_display(record.birth_date)}\n"
        f"Note: {note}\n"
        f"Reminder time: {record.notification_time}\n"
        f"{_render_countdown(days_until)}\n\n"
        "Greeting:\n"
        f"{greeting_text(record.name)}"
    )


def _render_reminder_stats(birthday_count: int, scheduled_count: int) -> str:
    return f"Total birthdays: {birthday_count}\nScheduled notifications: {scheduled_count}"


def _render_import_preview(decoded: DecodeResult) -> str:
    message = f"Found {len(decoded.candidates)} valid birthdays to import."
    if decoded.diagnostics:
        message += f"\n\n{len(decoded.diagnostics)} rows had errors and will be skipped."
    return message + "\n\nReply with yes to import, or no to cancel."


def _render_import_outcome(outcome: ImportOutcome) -> str:
    if not outcome.succeeded:
        lines = ["Import failed. No birthdays were imported."]
    else:
        lines = [f"Successfully imported {outcome.imported_count} birthdays."]
        if outcome.unscheduled_count:
            lines.append(f"{outcome.unscheduled_count} of them have no reminder scheduled.")
    if outcome.error_count:
        lines.append(f"{outcome.error_count} rows failed:")
        lines.extend(outcome.error_messages)
    return "\n".join(lines)


def _schedule_note(registration_id: str | None) -> str:
    if registration_id is None:
        return " The reminder could not be scheduled."
    return ""


async def help_command(update: Update, context: CallbackContext) -> None:
    if await _authorized_deps(update, context) is None:
        return
    await update.effective_message.reply_text(_render_help())


async def list_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    config = deps.store.load_config()
    if not config.birthdays:
        await update.effective_message.reply_text("No birthdays yet. Use /add to create one.")
        return

    rows = build_list_rows(config.birthdays, now_in_timezone(config.timezone), config.leap_day_rule)
    await update.effective_message.reply_text(_render_list_message(rows))


async def today_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    config = deps.store.load_config()
    today = now_in_timezone(config.timezone).date()
    records = celebrating_today(config.birthdays, today, config.leap_day_rule)
    if not records:
        await update.effective_message.reply_text("No birthdays today.")
        return

    names = "\n".join(f"- {record.name}" for record in records)
    await update.effective_message.reply_text(f"🎉 Today's Birthdays!\n{names}")


async def add_start(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    context.user_data[PENDING_KEY] = {}
    await update.effective_message.reply_text("Add birthday wizard started.\nStep 1/5: Send the person's name.")
    return STATE_ADD_NAME


async def add_name(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    try:
        name = clean_name(update.effective_message.text or "")
    except ValidationError as exc:
        await update.effective_message.reply_text(f"{exc}. Please send a name.")
        return STATE_ADD_NAME

    context.user_data[PENDING_KEY] = {"name": name}
    await update.effective_message.reply_text("Step 2/5: Send the birthday as MM-DD.")
    return STATE_ADD_BIRTHDAY


async def add_birthday(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    try:
        birth_date = parse_birthday_text(update.effective_message.text or "")
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. Please send MM-DD.")
        return STATE_ADD_BIRTHDAY

    context.user_data.setdefault(PENDING_KEY, {})["birth_date"] = birth_date
    await update.effective_message.reply_text("Step 3/5: Send a note, or - for none.")
    return STATE_ADD_NOTE


async def add_note(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    try:
        note = parse_note_text(update.effective_message.text or "")
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. Send a shorter note, or - for none.")
        return STATE_ADD_NOTE

    context.user_data.setdefault(PENDING_KEY, {})["note"] = note
    default_time = deps.store.load_config().default_notification_time
    await update.effective_message.reply_text(
        f"Step 4/5: Send the reminder time as HH:MM, or default for {default_time}."
    )
    return STATE_ADD_TIME


async def add_time(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    default_time = deps.store.load_config().default_notification_time
    try:
        notification_time = parse_time_text(update.effective_message.text or "", default_time)
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. Please send HH:MM or default.")
        return STATE_ADD_TIME

    pending = context.user_data.setdefault(PENDING_KEY, {})
    pending["notification_time"] = notification_time
    await update.effective_message.reply_text(_render_summary(pending, "Step 5/5"))
    return STATE_ADD_CONFIRM


async def add_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in YES | NO:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_ADD_CONFIRM

    pending = context.user_data.pop(PENDING_KEY, {})
    if decision in NO:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        record_id = deps.store.create(
            pending["name"], pending["birth_date"], pending["note"], pending["notification_time"]
        )
        record = deps.store.get(record_id)
    except (StoreError, ValidationError) as exc:
        LOGGER.exception("Could not add birthday for %s", pending.get("name"))
        await update.effective_message.reply_text(f"Could not save the birthday: {exc}")
        return ConversationHandler.END

    registration_id = deps.scheduler.schedule(record)
    await update.effective_message.reply_text("Birthday saved." + _schedule_note(registration_id))
    return ConversationHandler.END


async def _start_selection(update: Update, context: CallbackContext, title: str, state: int) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    records = deps.store.get_all()
    if not records:
        await update.effective_message.reply_text("No birthdays yet. Use /add to create one.")
        return ConversationHandler.END

    context.user_data[PENDING_KEY] = {"choices": [record.id for record in records]}
    await update.effective_message.reply_text(_render_selection(records, title))
    return state


async def _selected_record(update: Update, context: CallbackContext, deps: HandlerDependencies) -> BirthdayRecord | None:
    choices = context.user_data.get(PENDING_KEY, {}).get("choices", [])
    raw_text = (update.effective_message.text or "").strip()
    if not raw_text.isdigit() or not 1 <= int(raw_text) <= len(choices):
        await update.effective_message.reply_text(f"Entry must be a number between 1 and {len(choices)}.")
        return None

    record = deps.store.get(choices[int(raw_text) - 1])
    if record is None:
        await update.effective_message.reply_text("That birthday no longer exists. Send the command again.")
    return record


async def show_start(update: Update, context: CallbackContext) -> int:
    return await _start_selection(update, context, "Show birthday.", STATE_SHOW_SELECT)


async def show_select(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    record = await _selected_record(update, context, deps)
    if record is None:
        return STATE_SHOW_SELECT

    context.user_data.pop(PENDING_KEY, None)
    config = deps.store.load_config()
    days_until = days_until_next_occurrence(
        record.birth_date, now_in_timezone(config.timezone), config.leap_day_rule
    )
    await update.effective_message.reply_text(_render_detail(record, days_until))
    return ConversationHandler.END


async def edit_start(update: Update, context: CallbackContext) -> int:
    return await _start_selection(update, context, "Edit birthday wizard started.", STATE_EDIT_SELECT)


async def edit_select(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    record = await _selected_record(update, context, deps)
    if record is None:
        return STATE_EDIT_SELECT

    context.user_data[PENDING_KEY] = {
        "id": record.id,
        "name": record.name,
        "birth_date": record.birth_date,
        "note": record.note,
        "notification_time": record.notification_time,
    }
    await update.effective_message.reply_text(f'Step 2/6: Send a new name, or skip to keep "{record.name}".')
    return STATE_EDIT_NAME


async def edit_name(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_KEY, {})
    raw_text = update.effective_message.text or ""
    if not _is_skip(raw_text):
        try:
            pending["name"] = clean_name(raw_text)
        except ValidationError as exc:
            await update.effective_message.reply_text(f"{exc}. Send a name or skip.")
            return STATE_EDIT_NAME

    await update.effective_message.reply_text(
        f"Step 3/6: Send a new birthday as MM-DD, or skip to keep {pending['birth_date']}."
    )
    return STATE_EDIT_BIRTHDAY


async def edit_birthday(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_KEY, {})
    raw_text = update.effective_message.text or ""
    if not _is_skip(raw_text):
        try:
            pending["birth_date"] = parse_birthday_text(raw_text)
        except ValueError as exc:
            await update.effective_message.reply_text(f"{exc}. Please send MM-DD, or skip.")
            return STATE_EDIT_BIRTHDAY

    await update.effective_message.reply_text("Step 4/6: Send a new note, - to clear it, or keep.")
    return STATE_EDIT_NOTE


async def edit_note(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_KEY, {})
    raw_text = update.effective_message.text or ""
    if raw_text.strip().lower() not in {"keep", "same"}:
        try:
            pending["note"] = parse_note_text(raw_text)
        except ValueError as exc:
            await update.effective_message.reply_text(f"{exc}. Send a shorter note, - or keep.")
            return STATE_EDIT_NOTE

    await update.effective_message.reply_text(
        f"Step 5/6: Send a new reminder time as HH:MM, or skip to keep {pending['notification_time']}."
    )
    return STATE_EDIT_TIME


async def edit_time(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_KEY, {})
    raw_text = update.effective_message.text or ""
    if not _is_skip(raw_text):
        try:
            pending["notification_time"] = parse_time_text(raw_text, pending["notification_time"])
        except ValueError as exc:
            await update.effective_message.reply_text(f"{exc}. Please send HH:MM, or skip.")
            return STATE_EDIT_TIME

    await update.effective_message.reply_text(_render_summary(pending, "Step 6/6"))
    return STATE_EDIT_CONFIRM


async def edit_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in YES | NO:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_EDIT_CONFIRM

    pending = context.user_data.pop(PENDING_KEY, {})
    if decision in NO:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        changed = deps.store.update(
            pending["id"],
            name=pending["name"],
            birth_date=pending["birth_date"],
            note=pending["note"],
            notification_time=pending["notification_time"],
        )
        record = deps.store.get(pending["id"]) if changed else None
    except (StoreError, ValidationError) as exc:
        LOGGER.exception("Could not update birthday %s", pending.get("id"))
        await update.effective_message.reply_text(f"Could not save the birthday: {exc}")
        return ConversationHandler.END

    if record is None:
        await update.effective_message.reply_text("That birthday no longer exists. Send /edit and try again.")
        return ConversationHandler.END

    registration_id = deps.scheduler.schedule(record)
    await update.effective_message.reply_text("Birthday updated." + _schedule_note(registration_id))
    return ConversationHandler.END


async def delete_start(update: Update, context: CallbackContext) -> int:
    return await _start_selection(update, context, "Delete birthday.", STATE_DELETE_SELECT)


async def delete_select(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    record = await _selected_record(update, context, deps)
    if record is None:
        return STATE_DELETE_SELECT

    context.user_data[PENDING_KEY] = {"id": record.id, "name": record.name}
    await update.effective_message.reply_text(
        f"Delete {record.name}'s birthday ({format_for_display(record.birth_date)})? Reply with yes or no."
    )
    return STATE_DELETE_CONFIRM


async def delete_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in YES | NO:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_DELETE_CONFIRM

    pending = context.user_data.pop(PENDING_KEY, {})
    if decision in NO:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        removed = deps.store.delete(pending["id"])
    except StoreError as exc:
        LOGGER.exception("Could not delete birthday %s", pending["id"])
        await update.effective_message.reply_text(f"Could not delete the birthday: {exc}")
        return ConversationHandler.END

    deps.scheduler.unschedule(pending["id"])
    if removed:
        await update.effective_message.reply_text(f"Deleted {pending['name']}'s birthday.")
    else:
        await update.effective_message.reply_text("That birthday was already gone.")
    return ConversationHandler.END


async def export_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return

    async def share(path: Path) -> None:
        with path.open("rb") as file_obj:
            await update.effective_message.reply_document(
                document=file_obj,
                filename=path.name,
                caption="RemindDay birthdays export",
            )

    result = await deps.transfer.export_all(share=share)
    if result.no_data:
        await update.effective_message.reply_text("No birthdays to export. Add some birthdays first!")


async def import_start(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    await update.effective_message.reply_text(
        "Send a CSV file with the columns Name,BirthDate,Note,NotificationTime."
    )
    return STATE_IMPORT_FILE


async def import_file(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    tg_file = await update.effective_message.document.get_file()
    payload = await tg_file.download_as_bytearray()
    try:
        content = bytes(payload).decode("utf-8-sig")
    except UnicodeDecodeError:
        await update.effective_message.reply_text("The file must be UTF-8 encoded text.")
        return ConversationHandler.END

    try:
        decoded = deps.transfer.preview_import(content)
    except InvalidImportFileError as exc:
        await update.effective_message.reply_text(f"Invalid file: {exc}")
        return ConversationHandler.END

    if not decoded.has_candidates:
        errors = "\n".join(str(item) for item in decoded.diagnostics)
        await update.effective_message.reply_text(f"No valid birthdays found in the file.\n\n{errors}".rstrip())
        return ConversationHandler.END

    context.user_data[PENDING_IMPORT_KEY] = content
    await update.effective_message.reply_text(_render_import_preview(decoded))
    return STATE_IMPORT_CONFIRM


async def import_confirm(update: Update, context: CallbackContext) -> int:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in YES | NO:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_IMPORT_CONFIRM

    content = context.user_data.pop(PENDING_IMPORT_KEY, "")
    if decision in NO:
        await update.effective_message.reply_text("Import canceled.")
        return ConversationHandler.END

    try:
        outcome = deps.transfer.import_all(content)
    except (InvalidImportFileError, StoreError) as exc:
        await update.effective_message.reply_text(f"Import failed: {exc}")
        return ConversationHandler.END

    await update.effective_message.reply_text(_render_import_outcome(outcome))
    return ConversationHandler.END


async def reminders_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return
    birthday_count = len(deps.store.get_all())
    scheduled_count = len(deps.scheduler.list_scheduled())
    await update.effective_message.reply_text(_render_reminder_stats(birthday_count, scheduled_count))


async def clear_reminders_command(update: Update, context: CallbackContext) -> None:
    deps = await _authorized_deps(update, context)
    if deps is None:
        return
    deps.scheduler.cancel_all()
    await update.effective_message.reply_text(
        "All reminders cancelled. Edit a birthday or restart the bot to schedule them again."
    )


async def cancel_command(update: Update, context: CallbackContext) -> int:
    if await _authorized_deps(update, context) is None:
        return ConversationHandler.END

    context.user_data.pop(PENDING_KEY, None)
    context.user_data.pop(PENDING_IMPORT_KEY, None)
    await update.effective_message.reply_text("Wizard canceled.")
    return ConversationHandler.END


def _text(callback) -> list[MessageHandler]:
    return [MessageHandler(filters.TEXT & ~filters.COMMAND, callback)]


def build_handlers() -> list:
    add_conversation = ConversationHandler(
        entry_points=[CommandHandler("add", add_start)],
        states={
            STATE_ADD_NAME: _text(add_name),
            STATE_ADD_BIRTHDAY: _text(add_birthday),
            STATE_ADD_NOTE: _text(add_note),
            STATE_ADD_TIME: _text(add_time),
            STATE_ADD_CONFIRM: _text(add_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="add_birthday_conversation",
        persistent=False,
    )

    edit_conversation = ConversationHandler(
        entry_points=[CommandHandler("edit", edit_start)],
        states={
            STATE_EDIT_SELECT: _text(edit_select),
            STATE_EDIT_NAME: _text(edit_name),
            STATE_EDIT_BIRTHDAY: _text(edit_birthday),
            STATE_EDIT_NOTE: _text(edit_note),
            STATE_EDIT_TIME: _text(edit_time),
            STATE_EDIT_CONFIRM: _text(edit_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="edit_birthday_conversation",
        persistent=False,
    )

    delete_conversation = ConversationHandler(
        entry_points=[CommandHandler("delete", delete_start)],
        states={
            STATE_DELETE_SELECT: _text(delete_select),
            STATE_DELETE_CONFIRM: _text(delete_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="delete_birthday_conversation",
        persistent=False,
    )

    show_conversation = ConversationHandler(
        entry_points=[CommandHandler("show", show_start)],
        states={
            STATE_SHOW_SELECT: _text(show_select),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="show_birthday_conversation",
        persistent=False,
    )

    import_conversation = ConversationHandler(
        entry_points=[CommandHandler("import", import_start)],
        states={
            STATE_IMPORT_FILE: [MessageHandler(filters.Document.ALL, import_file)],
            STATE_IMPORT_CONFIRM: _text(import_confirm),
        },
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name="import_birthdays_conversation",
        persistent=False,
    )

    return [
        CommandHandler("help", help_command),
        CommandHandler("start", help_command),
        CommandHandler("list", list_command),
        CommandHandler("today", today_command),
        CommandHandler("export", export_command),
        CommandHandler("reminders", reminders_command),
        CommandHandler("clearreminders", clear_reminders_command),
        CommandHandler("cancel", cancel_command),
        add_conversation,
        edit_conversation,
        delete_conversation,
        show_conversation,
        import_conversation,
    ]
