from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path


DEFAULT_NOTIFICATION_TIME = "09:00"
MAX_NAME_LENGTH = 50
MAX_NOTE_LENGTH = 200


class DiagnosticKind(str, Enum):
    INSUFFICIENT_COLUMNS = "InsufficientColumns"
    MISSING_NAME = "MissingName"
    NAME_TOO_LONG = "NameTooLong"
    INVALID_BIRTH_DATE_FORMAT = "InvalidBirthDateFormat"
    NOTE_TOO_LONG = "NoteTooLong"
    INVALID_TIME_FORMAT = "InvalidTimeFormat"
    STORE_ERROR = "StoreError"


@dataclass(frozen=True)
class BirthdayRecord:
    name: str
    birth_date: str
    note: str = ""
    notification_time: str = DEFAULT_NOTIFICATION_TIME
    id: str | None = None

    def with_id(self, record_id: str) -> BirthdayRecord:
        return replace(self, id=record_id)


@dataclass(frozen=True)
class AppConfig:
    timezone: str
    leap_day_rule: str
    default_notification_time: str
    notification_sound: bool
    birthdays: list[BirthdayRecord]


@dataclass(frozen=True)
class ImportCandidate:
    row: int
    name: str
    birth_date: str
    note: str
    notification_time: str

    def to_record(self) -> BirthdayRecord:
        return BirthdayRecord(
            name=self.name,
            birth_date=self.birth_date,
            note=self.note,
            notification_time=self.notification_time,
        )


@dataclass(frozen=True)
class RowDiagnostic:
    row: int
    kind: DiagnosticKind
    message: str

    def __str__(self) -> str:
        return f"Row {self.row}: {self.message}"


@dataclass(frozen=True)
class DecodeResult:
    candidates: list[ImportCandidate]
    diagnostics: list[RowDiagnostic]

    @property
    def has_candidates(self) -> bool:
        return bool(self.candidates)


@dataclass(frozen=True)
class ImportOutcome:
    """Result of a bulk import.

    ``error_count`` covers rows rejected while decoding and candidates the
    store refused. Records that were stored but could not get a reminder are
    counted in ``unscheduled_count`` and still count as imported.
    """

    imported_count: int = 0
    unscheduled_count: int = 0
    diagnostics: tuple[RowDiagnostic, ...] = field(default_factory=tuple)

    @property
    def error_count(self) -> int:
        return len(self.diagnostics)

    @property
    def error_messages(self) -> list[str]:
        ordered = sorted(self.diagnostics, key=lambda item: item.row)
        return [str(item) for item in ordered]

    @property
    def succeeded(self) -> bool:
        return self.imported_count > 0

    def with_imported(self, *, scheduled: bool) -> ImportOutcome:
        return replace(
            self,
            imported_count=self.imported_count + 1,
            unscheduled_count=self.unscheduled_count + (0 if scheduled else 1),
        )

    def with_failure(self, diagnostic: RowDiagnostic) -> ImportOutcome:
        return replace(self, diagnostics=(*self.diagnostics, diagnostic))


@dataclass(frozen=True)
class ExportResult:
    path: Path | None
    record_count: int

    @property
    def no_data(self) -> bool:
        return self.path is None
