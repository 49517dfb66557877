from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from remindday.models import (
    DEFAULT_NOTIFICATION_TIME,
    BirthdayRecord,
    DecodeResult,
    DiagnosticKind,
    ImportCandidate,
    RowDiagnostic,
)
from remindday.validation import (
    ValidationError,
    clean_name,
    clean_note,
    clean_notification_time,
    parse_birth_date,
)

HEADER = ("Name", "BirthDate", "Note", "NotificationTime")


class InvalidImportFileError(ValueError):
    pass


class EmptyOrInvalidFileError(InvalidImportFileError):
    pass


class MissingRequiredColumnsError(InvalidImportFileError):
    pass


def encode_records(records: Iterable[BirthdayRecord]) -> str:
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for record in records:
        writer.writerow((record.name, record.birth_date, record.note or "", record.notification_time))
    return buffer.getvalue().removesuffix("\n")


def _is_blank_row(fields: list[str]) -> bool:
    return not fields or (len(fields) == 1 and not fields[0].strip())


def _candidate_from_fields(row: int, fields: list[str], default_time: str) -> ImportCandidate:
    if len(fields) < 2:
        raise ValidationError(DiagnosticKind.INSUFFICIENT_COLUMNS, "Not enough columns")

    name = clean_name(fields[0])
    birth_date = fields[1].strip()
    parse_birth_date(birth_date)
    note = clean_note(fields[2] if len(fields) > 2 else "")
    notification_time = clean_notification_time(fields[3] if len(fields) > 3 else "", default_time)

    return ImportCandidate(
        row=row,
        name=name,
        birth_date=birth_date,
        note=note,
        notification_time=notification_time,
    )


def decode_records(content: str, *, default_time: str = DEFAULT_NOTIFICATION_TIME) -> DecodeResult:
    """Parse CSV text into import candidates.

    File-level problems raise ``InvalidImportFileError``. Row-level problems
    skip the row and are reported as diagnostics numbered by the physical line
    the row starts on, the header being row 1.
    """
    text = content.lstrip("\ufeff").strip()
    lines = text.split("\n")
    if len(lines) < 2:
        raise EmptyOrInvalidFileError("The CSV file appears to be empty or invalid.")

    header = lines[0].lower()
    if "name" not in header or "birthdate" not in header:
        raise MissingRequiredColumnsError("The CSV file must contain Name and BirthDate columns.")

    candidates: list[ImportCandidate] = []
    diagnostics: list[RowDiagnostic] = []

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        next(reader)
        previous_line = reader.line_num
        for fields in reader:
            row = previous_line + 1
            previous_line = reader.line_num
            if _is_blank_row(fields):
                continue
            try:
                candidates.append(_candidate_from_fields(row, fields, default_time))
            except ValidationError as exc:
                diagnostics.append(RowDiagnostic(row=row, kind=exc.kind, message=str(exc)))
    except csv.Error as exc:
        raise EmptyOrInvalidFileError(f"The CSV file could not be parsed: {exc}") from exc

    return DecodeResult(candidates=candidates, diagnostics=diagnostics)
