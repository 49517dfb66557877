from __future__ import annotations

import re
from datetime import date

from remindday.models import (
    DEFAULT_NOTIFICATION_TIME,
    MAX_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    BirthdayRecord,
    DiagnosticKind,
)

BIRTH_DATE_PATTERN = re.compile(r"^(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$")
TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


class ValidationError(ValueError):
    def __init__(self, kind: DiagnosticKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def validate_month_day(month: int, day: int) -> None:
    # 2000 is a leap year, so 02-29 passes while 02-30 and 04-31 do not.
    try:
        date(2000, month, day)
    except ValueError as exc:
        raise ValidationError(
            DiagnosticKind.INVALID_BIRTH_DATE_FORMAT,
            f"Invalid birth date {month:02d}-{day:02d} (no such day)",
        ) from exc


def parse_birth_date(value: str) -> tuple[int, int]:
    text = value.strip()
    match = BIRTH_DATE_PATTERN.fullmatch(text)
    if not match:
        raise ValidationError(
            DiagnosticKind.INVALID_BIRTH_DATE_FORMAT,
            "Invalid birth date format (should be MM-DD)",
        )
    month, day = int(match.group(1)), int(match.group(2))
    validate_month_day(month, day)
    return month, day


def parse_time_of_day(value: str) -> tuple[int, int]:
    match = TIME_PATTERN.fullmatch(value.strip())
    if not match:
        raise ValidationError(
            DiagnosticKind.INVALID_TIME_FORMAT,
            "Invalid notification time format (should be HH:MM)",
        )
    hour, minute = match.group(0).split(":")
    return int(hour), int(minute)


def clean_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValidationError(DiagnosticKind.MISSING_NAME, "Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            DiagnosticKind.NAME_TOO_LONG,
            f"Name must be at most {MAX_NAME_LENGTH} characters",
        )
    return name


def clean_note(value: str | None) -> str:
    note = (value or "").strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(
            DiagnosticKind.NOTE_TOO_LONG,
            f"Note must be at most {MAX_NOTE_LENGTH} characters",
        )
    return note


def clean_notification_time(value: str | None, default: str = DEFAULT_NOTIFICATION_TIME) -> str:
    text = (value or "").strip()
    if not text:
        return default
    parse_time_of_day(text)
    return text


def clean_record(record: BirthdayRecord) -> BirthdayRecord:
    """Trim and validate every field, raising ``ValidationError`` on the first problem."""
    name = clean_name(record.name)
    birth_date = record.birth_date.strip()
    parse_birth_date(birth_date)
    return BirthdayRecord(
        name=name,
        birth_date=birth_date,
        note=clean_note(record.note),
        notification_time=clean_notification_time(record.notification_time),
        id=record.id,
    )
