from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path

from remindday.csv_codec import decode_records, encode_records
from remindday.models import DecodeResult, DiagnosticKind, ExportResult, ImportCandidate, ImportOutcome, RowDiagnostic
from remindday.record_store import BirthdayStore, StoreError
from remindday.reminder_scheduler import ReminderScheduler
from remindday.validation import ValidationError

LOGGER = logging.getLogger(__name__)


def export_filename(today: date) -> str:
    return f"Birthdays_{today.isoformat()}.csv"


class BirthdayTransferService:
    """CSV export and import across the store and the reminder scheduler."""

    def __init__(
        self,
        *,
        store: BirthdayStore,
        scheduler: ReminderScheduler,
        export_dir: Path,
        today: Callable[[], date],
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._export_dir = export_dir
        self._today = today

    async def export_all(self, share: Callable[[Path], Awaitable[None]] | None = None) -> ExportResult:
        records = self._store.get_all()
        if not records:
            return ExportResult(path=None, record_count=0)

        records.sort(key=lambda record: record.birth_date)
        self._export_dir.mkdir(parents=True, exist_ok=True)
        path = self._export_dir / export_filename(self._today())
        path.write_text(encode_records(records), encoding="utf-8", newline="")

        if share is not None:
            await share(path)

        LOGGER.info("Exported %s birthdays to %s", len(records), path)
        return ExportResult(path=path, record_count=len(records))

    def preview_import(self, content: str) -> DecodeResult:
        default_time = self._store.load_config().default_notification_time
        return decode_records(content, default_time=default_time)

    def import_all(self, content: str) -> ImportOutcome:
        decoded = self.preview_import(content)
        outcome = ImportOutcome(diagnostics=tuple(decoded.diagnostics))
        if not decoded.has_candidates:
            return outcome

        for candidate in decoded.candidates:
            outcome = self._import_one(candidate, outcome)

        LOGGER.info(
            "Import finished: %s imported, %s errors, %s without reminder",
            outcome.imported_count,
            outcome.error_count,
            outcome.unscheduled_count,
        )
        return outcome

    def _import_one(self, candidate: ImportCandidate, outcome: ImportOutcome) -> ImportOutcome:
        try:
            record_id = self._store.create(
                candidate.name,
                candidate.birth_date,
                candidate.note,
                candidate.notification_time,
            )
        except (StoreError, ValidationError) as exc:
            LOGGER.exception("Error importing birthday %s from row %s", candidate.name, candidate.row)
            return outcome.with_failure(
                RowDiagnostic(row=candidate.row, kind=DiagnosticKind.STORE_ERROR, message=f"Could not save: {exc}")
            )

        registration_id = self._scheduler.schedule(candidate.to_record().with_id(record_id))
        return outcome.with_imported(scheduled=registration_id is not None)
