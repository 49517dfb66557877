from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

import pytest

from remindday.csv_codec import MissingRequiredColumnsError
from remindday.models import DiagnosticKind
from remindday.notifications import NotificationContent, NotificationTrigger, Registration
from remindday.record_store import BirthdayStore, StoreError
from remindday.registration_index import RegistrationIndex
from remindday.reminder_scheduler import ReminderScheduler
from remindday.transfer_service import BirthdayTransferService


@dataclass
class FakeBackend:
    registrations: dict[str, Registration] = field(default_factory=dict)
    fail_for: set[str] = field(default_factory=set)

    def schedule(self, content: NotificationContent, trigger: NotificationTrigger) -> str:
        if any(name in content.body for name in self.fail_for):
            raise RuntimeError("notification service unavailable")
        registration_id = f"birthday-{len(self.registrations) + 1}"
        self.registrations[registration_id] = Registration(registration_id, content, trigger)
        return registration_id

    def cancel(self, registration_id: str) -> None:
        self.registrations.pop(registration_id, None)

    def cancel_all(self) -> None:
        self.registrations.clear()

    def list_all(self) -> list[Registration]:
        return list(self.registrations.values())


class FlakyStore(BirthdayStore):
    def __init__(self, path: Path, refuse: str) -> None:
        super().__init__(path)
        self._refuse = refuse

    def create(self, name, birth_date, note="", notification_time=None) -> str:
        if name == self._refuse:
            raise StoreError("disk full")
        return super().create(name, birth_date, note, notification_time)


@dataclass
class Harness:
    store: BirthdayStore
    backend: FakeBackend
    index: RegistrationIndex
    service: BirthdayTransferService
    export_dir: Path


def _harness(tmp_path: Path, *, store: BirthdayStore | None = None, backend: FakeBackend | None = None) -> Harness:
    store = store or BirthdayStore(tmp_path / "birthdays.toml")
    store.ensure_default()
    backend = backend or FakeBackend()
    index = RegistrationIndex(tmp_path / "registrations.json")
    scheduler = ReminderScheduler(
        backend=backend,
        registrations=index,
        clock=lambda: datetime(2026, 10, 17, 12, 0),
    )
    export_dir = tmp_path / "exports"
    service = BirthdayTransferService(
        store=store,
        scheduler=scheduler,
        export_dir=export_dir,
        today=lambda: date(2026, 10, 17),
    )
    return Harness(store=store, backend=backend, index=index, service=service, export_dir=export_dir)


MIXED_CSV = (
    "Name,BirthDate,Note,NotificationTime\n"
    "Alice,03-14,,09:00\n"
    ",04-01,Missing name,10:00\n"
    "Bob,02-30,,08:00\n"
)


def test_export_empty_store_returns_no_data(tmp_path: Path) -> None:
    harness = _harness(tmp_path)
    shared: list[Path] = []

    async def share(path: Path) -> None:
        shared.append(path)

    result = asyncio.run(harness.service.export_all(share=share))

    assert result.no_data is True
    assert result.record_count == 0
    assert shared == []
    assert not harness.export_dir.exists()


def test_export_writes_dated_csv_sorted_by_birth_date(tmp_path: Path) -> None:
    harness = _harness(tmp_path)
    harness.store.create("Bob", "12-25", "", "18:30")
    harness.store.create("Alice", "03-14", "Loves pie, and cake", "09:00")
    shared: list[Path] = []

    async def share(path: Path) -> None:
        shared.append(path)

    result = asyncio.run(harness.service.export_all(share=share))

    assert result.record_count == 2
    assert result.path == harness.export_dir / "Birthdays_2026-10-17.csv"
    assert shared == [result.path]
    assert result.path.read_text(encoding="utf-8") == (
        "Name,BirthDate,Note,NotificationTime\n"
        'Alice,03-14,"Loves pie, and cake",09:00\n'
        "Bob,12-25,,18:30"
    )


def test_import_mixed_file(tmp_path: Path) -> None:
    harness = _harness(tmp_path)

    outcome = harness.service.import_all(MIXED_CSV)

    assert outcome.imported_count == 1
    assert outcome.error_count == 2
    assert outcome.unscheduled_count == 0
    assert [(d.row, d.kind) for d in outcome.diagnostics] == [
        (3, DiagnosticKind.MISSING_NAME),
        (4, DiagnosticKind.INVALID_BIRTH_DATE_FORMAT),
    ]
    assert outcome.error_messages[0] == "Row 3: Name is required"

    records = harness.store.get_all()
    assert [record.name for record in records] == ["Alice"]
    assert harness.index.get(records[0].id) in harness.backend.registrations


def test_import_without_valid_rows_stores_nothing(tmp_path: Path) -> None:
    harness = _harness(tmp_path)

    outcome = harness.service.import_all("Name,BirthDate\n,03-14\nBob,13-01\n")

    assert outcome.succeeded is False
    assert outcome.imported_count == 0
    assert outcome.error_count == 2
    assert harness.store.get_all() == []
    assert harness.backend.registrations == {}


def test_import_rejects_file_without_required_columns(tmp_path: Path) -> None:
    harness = _harness(tmp_path)

    with pytest.raises(MissingRequiredColumnsError):
        harness.service.import_all("Name,Note\nAlice,hi\n")


def test_store_failure_is_isolated_per_row(tmp_path: Path) -> None:
    store = FlakyStore(tmp_path / "birthdays.toml", refuse="Bob")
    harness = _harness(tmp_path, store=store)

    outcome = harness.service.import_all("Name,BirthDate\nAlice,03-14\nBob,05-05\nCara,07-07\n")

    assert outcome.imported_count == 2
    assert outcome.error_count == 1
    assert outcome.diagnostics[0].row == 3
    assert outcome.diagnostics[0].kind == DiagnosticKind.STORE_ERROR
    assert [record.name for record in harness.store.get_all()] == ["Alice", "Cara"]


def test_schedule_failure_keeps_record_and_is_counted(tmp_path: Path) -> None:
    harness = _harness(tmp_path, backend=FakeBackend(fail_for={"Bob"}))

    outcome = harness.service.import_all("Name,BirthDate\nAlice,03-14\nBob,05-05\n")

    assert outcome.imported_count == 2
    assert outcome.unscheduled_count == 1
    assert outcome.error_count == 0
    assert len(harness.backend.registrations) == 1
    assert len(harness.store.get_all()) == 2


def test_preview_does_not_touch_the_store(tmp_path: Path) -> None:
    harness = _harness(tmp_path)

    decoded = harness.service.preview_import(MIXED_CSV)

    assert len(decoded.candidates) == 1
    assert len(decoded.diagnostics) == 2
    assert harness.store.get_all() == []
