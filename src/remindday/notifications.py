from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from telegram.ext import CallbackContext, Defaults, JobQueue

from remindday.date_logic import DEFAULT_LEAP_DAY_RULE, next_trigger_instant

LOGGER = logging.getLogger(__name__)

REGISTRATION_PREFIX = "birthday-"


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    payload: dict[str, str] = field(default_factory=dict)

    def render(self) -> str:
        return f"{self.title}\n{self.body}"


@dataclass(frozen=True)
class NotificationTrigger:
    instant: datetime
    repeats_yearly: bool = False
    birth_date: str | None = None


@dataclass(frozen=True)
class Registration:
    registration_id: str
    content: NotificationContent
    trigger: NotificationTrigger


class NotificationBackend(Protocol):
    def schedule(self, content: NotificationContent, trigger: NotificationTrigger) -> str: ...

    def cancel(self, registration_id: str) -> None: ...

    def cancel_all(self) -> None: ...

    def list_all(self) -> list[Registration]: ...


def configure_notification_defaults(timezone: str, *, notification_sound: bool) -> Defaults:
    """Process-wide delivery behaviour, built once while the application is assembled."""
    return Defaults(tzinfo=ZoneInfo(timezone), disable_notification=not notification_sound)


def following_trigger(trigger: NotificationTrigger, leap_day_rule: str = DEFAULT_LEAP_DAY_RULE) -> NotificationTrigger:
    birth_date = trigger.birth_date or trigger.instant.strftime("%m-%d")
    instant = next_trigger_instant(birth_date, trigger.instant.strftime("%H:%M"), trigger.instant, leap_day_rule)
    return replace(trigger, instant=instant)


class JobQueueNotificationBackend:
    """Registrations as one-shot ``JobQueue`` jobs that re-arm themselves each year."""

    def __init__(
        self,
        *,
        job_queue: JobQueue,
        chat_id: int,
        timezone: str,
        leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
    ) -> None:
        self._job_queue = job_queue
        self._chat_id = chat_id
        self._tz = ZoneInfo(timezone)
        self._leap_day_rule = leap_day_rule

    def schedule(self, content: NotificationContent, trigger: NotificationTrigger) -> str:
        registration_id = f"{REGISTRATION_PREFIX}{uuid.uuid4().hex}"
        self._arm(Registration(registration_id=registration_id, content=content, trigger=trigger))
        return registration_id

    def cancel(self, registration_id: str) -> None:
        for job in self._job_queue.get_jobs_by_name(registration_id):
            job.schedule_removal()

    def cancel_all(self) -> None:
        for job in self._owned_jobs():
            job.schedule_removal()

    def list_all(self) -> list[Registration]:
        return [job.data for job in self._owned_jobs() if isinstance(job.data, Registration)]

    def _owned_jobs(self) -> list:
        return [
            job
            for job in self._job_queue.jobs()
            if job.name and job.name.startswith(REGISTRATION_PREFIX) and not job.removed
        ]

    def _arm(self, registration: Registration) -> None:
        instant = registration.trigger.instant
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self._tz)

        self._job_queue.run_once(
            self._fire,
            when=instant,
            data=registration,
            name=registration.registration_id,
            chat_id=self._chat_id,
        )

    async def _fire(self, context: CallbackContext) -> None:
        registration: Registration = context.job.data
        try:
            await context.bot.send_message(chat_id=context.job.chat_id, text=registration.content.render())
            LOGGER.info("Delivered reminder %s", registration.registration_id)
        finally:
            if registration.trigger.repeats_yearly:
                nxt = following_trigger(registration.trigger, self._leap_day_rule)
                self._arm(replace(registration, trigger=nxt))
