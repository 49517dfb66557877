from __future__ import annotations

import logging
import os
import tempfile
import tomllib
import uuid
from dataclasses import replace
from pathlib import Path

from remindday.date_logic import ALLOWED_LEAP_DAY_RULES, DEFAULT_LEAP_DAY_RULE
from remindday.models import DEFAULT_NOTIFICATION_TIME, AppConfig, BirthdayRecord
from remindday.validation import ValidationError, clean_notification_time, clean_record

LOGGER = logging.getLogger(__name__)

_TOML_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


class StoreError(RuntimeError):
    pass


def _toml_escape_char(char: str) -> str:
    if char in _TOML_ESCAPES:
        return _TOML_ESCAPES[char]
    if ord(char) < 0x20 or char == "\x7f":
        return f"\\u{ord(char):04x}"
    return char


def _toml_escape(value: str) -> str:
    return "".join(_toml_escape_char(char) for char in value)


def validate_config(config: AppConfig) -> AppConfig:
    timezone = config.timezone.strip()
    if not timezone:
        raise ValueError("timezone must not be empty")

    leap_day_rule = config.leap_day_rule.strip().lower()
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise ValueError(f"leap_day_rule must be one of {sorted(ALLOWED_LEAP_DAY_RULES)}")

    default_time = clean_notification_time(config.default_notification_time)

    seen_ids: set[str] = set()
    validated: list[BirthdayRecord] = []
    for record in config.birthdays:
        if not record.id:
            raise ValueError(f"birthday {record.name!r} has no id")
        if record.id in seen_ids:
            raise ValueError(f"duplicate birthday id: {record.id}")
        seen_ids.add(record.id)
        validated.append(clean_record(record))

    return AppConfig(
        timezone=timezone,
        leap_day_rule=leap_day_rule,
        default_notification_time=default_time,
        notification_sound=bool(config.notification_sound),
        birthdays=validated,
    )


def render_config(config: AppConfig) -> str:
    validated = validate_config(config)

    lines: list[str] = [
        f'timezone = "{_toml_escape(validated.timezone)}"',
        f'leap_day_rule = "{validated.leap_day_rule}"',
        f'default_notification_time = "{validated.default_notification_time}"',
        f"notification_sound = {'true' if validated.notification_sound else 'false'}",
        "",
    ]

    for record in validated.birthdays:
        lines.append("[[birthdays]]")
        lines.append(f'id = "{_toml_escape(record.id or "")}"')
        lines.append(f'name = "{_toml_escape(record.name)}"')
        lines.append(f'birth_date = "{record.birth_date}"')
        lines.append(f'note = "{_toml_escape(record.note)}"')
        lines.append(f'notification_time = "{record.notification_time}"')
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def parse_config(data: dict) -> AppConfig:
    birthdays: list[BirthdayRecord] = []
    for row in data.get("birthdays", []):
        birthdays.append(
            BirthdayRecord(
                id=str(row.get("id", "")),
                name=str(row.get("name", "")),
                birth_date=str(row.get("birth_date", "")),
                note=str(row.get("note", "")),
                notification_time=str(row.get("notification_time", "")),
            )
        )

    config = AppConfig(
        timezone=str(data.get("timezone", "")),
        leap_day_rule=str(data.get("leap_day_rule", DEFAULT_LEAP_DAY_RULE)),
        default_notification_time=str(data.get("default_notification_time", DEFAULT_NOTIFICATION_TIME)),
        notification_sound=bool(data.get("notification_sound", True)),
        birthdays=birthdays,
    )
    return validate_config(config)


def save_config_atomic(path: Path, config: AppConfig) -> None:
    rendered = render_config(config)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        temp_file.write(rendered)
        temp_name = temp_file.name

    os.replace(temp_name, path)


class BirthdayStore:
    """Birthday records kept in one TOML file, rewritten atomically on every change."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def ensure_default(self, *, timezone: str = "UTC") -> None:
        if self._path.exists():
            return

        self._save(
            AppConfig(
                timezone=timezone,
                leap_day_rule=DEFAULT_LEAP_DAY_RULE,
                default_notification_time=DEFAULT_NOTIFICATION_TIME,
                notification_sound=True,
                birthdays=[],
            )
        )

    def load_config(self) -> AppConfig:
        if not self._path.exists():
            raise StoreError(f"Birthday store not found: {self._path}")

        try:
            with self._path.open("rb") as file_obj:
                data = tomllib.load(file_obj)
            return parse_config(data)
        except (OSError, tomllib.TOMLDecodeError, ValueError) as exc:
            raise StoreError(f"Could not read birthday store {self._path}: {exc}") from exc

    def get_all(self) -> list[BirthdayRecord]:
        records = self.load_config().birthdays
        return sorted(records, key=lambda record: (record.birth_date, record.name.lower()))

    def get(self, record_id: str) -> BirthdayRecord | None:
        for record in self.load_config().birthdays:
            if record.id == record_id:
                return record
        return None

    def get_for_date(self, birth_date: str) -> list[BirthdayRecord]:
        return [record for record in self.get_all() if record.birth_date == birth_date]

    def create(
        self,
        name: str,
        birth_date: str,
        note: str = "",
        notification_time: str | None = None,
    ) -> str:
        config = self.load_config()
        record = clean_record(
            BirthdayRecord(
                name=name,
                birth_date=birth_date,
                note=note,
                notification_time=notification_time or config.default_notification_time,
                id=str(uuid.uuid4()),
            )
        )
        self._save(replace(config, birthdays=[*config.birthdays, record]))
        LOGGER.info("Stored birthday %s for %s", record.id, record.name)
        return record.id

    def update(
        self,
        record_id: str,
        *,
        name: str | None = None,
        birth_date: str | None = None,
        note: str | None = None,
        notification_time: str | None = None,
    ) -> int:
        config = self.load_config()
        changed = 0
        updated: list[BirthdayRecord] = []
        for record in config.birthdays:
            if record.id == record_id:
                record = clean_record(
                    BirthdayRecord(
                        id=record.id,
                        name=record.name if name is None else name,
                        birth_date=record.birth_date if birth_date is None else birth_date,
                        note=record.note if note is None else note,
                        notification_time=(
                            record.notification_time if notification_time is None else notification_time
                        ),
                    )
                )
                changed += 1
            updated.append(record)

        if changed:
            self._save(replace(config, birthdays=updated))
            LOGGER.info("Updated birthday %s", record_id)
        return changed

    def delete(self, record_id: str) -> int:
        config = self.load_config()
        remaining = [record for record in config.birthdays if record.id != record_id]
        removed = len(config.birthdays) - len(remaining)
        if removed:
            self._save(replace(config, birthdays=remaining))
            LOGGER.info("Deleted birthday %s", record_id)
        return removed

    def _save(self, config: AppConfig) -> None:
        try:
            save_config_atomic(self._path, config)
        except ValidationError:
            raise
        except (OSError, ValueError) as exc:
            raise StoreError(f"Could not write birthday store {self._path}: {exc}") from exc
