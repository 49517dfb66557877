from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

from remindday.date_logic import DEFAULT_LEAP_DAY_RULE, next_trigger_instant
from remindday.models import BirthdayRecord
from remindday.notifications import (
    NotificationBackend,
    NotificationContent,
    NotificationTrigger,
    Registration,
)
from remindday.registration_index import RegistrationIndex

LOGGER = logging.getLogger(__name__)

REMINDER_TITLE = "🎉 Birthday Reminder!"

BODY_TEMPLATES = (
    "Today is {person_name}'s birthday! Don't forget to wish them!",
    "🥳 Today we celebrate {person_name}. Go make it count.",
    "🎂 It's {person_name} Day™. Cake is appropriate.",
    "🎈 {person_name} leveled up today. Send your wishes!",
    "📢 Public service announcement: {person_name} was born on this day.",
    "🌟 Today's featured human: {person_name}.",
)


def now_in_timezone(timezone_name: str) -> datetime:
    """Current local wall-clock time in ``timezone_name``, without tzinfo."""
    return datetime.now(ZoneInfo(timezone_name)).replace(tzinfo=None)


def select_body_template(record_id: str, birth_date: str) -> str:
    digest = hashlib.sha256(f"{record_id}|{birth_date}".encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "big") % len(BODY_TEMPLATES)
    return BODY_TEMPLATES[index]


def build_content(record: BirthdayRecord) -> NotificationContent:
    body = select_body_template(record.id or "", record.birth_date).format(person_name=record.name)
    if record.note:
        body = f"{body}\nNote: {record.note}"
    return NotificationContent(title=REMINDER_TITLE, body=body, payload={"record_id": record.id or ""})


class ReminderScheduler:
    def __init__(
        self,
        *,
        backend: NotificationBackend,
        registrations: RegistrationIndex,
        clock: Callable[[], datetime],
        leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
    ) -> None:
        self._backend = backend
        self._registrations = registrations
        self._clock = clock
        self._leap_day_rule = leap_day_rule

    def schedule(self, record: BirthdayRecord) -> str | None:
        """Register the yearly reminder for ``record``, replacing any previous one.

        Returns the registration id, or ``None`` when scheduling failed. Failures
        are logged and never raised so batch callers can carry on.
        """
        if not record.id:
            LOGGER.warning("Refusing to schedule unsaved birthday for %s", record.name)
            return None

        try:
            self.unschedule(record.id)
            instant = next_trigger_instant(
                record.birth_date, record.notification_time, self._clock(), self._leap_day_rule
            )
            registration_id = self._backend.schedule(
                build_content(record),
                NotificationTrigger(instant=instant, repeats_yearly=True, birth_date=record.birth_date),
            )
            self._registrations.set(record.id, registration_id)
        except Exception:
            LOGGER.exception("Could not schedule reminder for %s (%s)", record.name, record.id)
            return None

        LOGGER.info("Reminder %s for %s scheduled at %s", registration_id, record.name, instant.isoformat())
        return registration_id

    def unschedule(self, record_id: str) -> None:
        registration_id = self._registrations.pop(record_id)
        if registration_id is not None:
            self._cancel_registration(registration_id)

    def cancel(self, registration_id: str) -> None:
        self._cancel_registration(registration_id)
        self._registrations.discard_registration(registration_id)

    def cancel_all(self) -> None:
        self._backend.cancel_all()
        self._registrations.clear()
        LOGGER.info("Cancelled all birthday reminders")

    def list_scheduled(self) -> list[Registration]:
        return self._backend.list_all()

    def restore(self, records: Iterable[BirthdayRecord]) -> int:
        """Rebuild every registration after a restart, dropping mappings left by the previous run."""
        self._registrations.clear()
        scheduled = 0
        for record in records:
            if self.schedule(record) is not None:
                scheduled += 1
        LOGGER.info("Restored %s birthday reminders", scheduled)
        return scheduled

    def _cancel_registration(self, registration_id: str) -> None:
        try:
            self._backend.cancel(registration_id)
        except Exception:
            LOGGER.exception("Could not cancel reminder %s", registration_id)
