from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from remindday.notifications import (
    JobQueueNotificationBackend,
    NotificationContent,
    NotificationTrigger,
    configure_notification_defaults,
    following_trigger,
)


@dataclass
class FakeJob:
    callback: Any
    when: datetime
    data: Any
    name: str
    chat_id: int
    removed: bool = False

    def schedule_removal(self) -> None:
        self.removed = True


@dataclass
class FakeJobQueue:
    scheduled: list[FakeJob] = field(default_factory=list)

    def run_once(self, callback, when, data=None, name=None, chat_id=None) -> FakeJob:
        job = FakeJob(callback=callback, when=when, data=data, name=name, chat_id=chat_id)
        self.scheduled.append(job)
        return job

    def get_jobs_by_name(self, name: str) -> tuple[FakeJob, ...]:
        return tuple(job for job in self.scheduled if job.name == name and not job.removed)

    def jobs(self) -> tuple[FakeJob, ...]:
        return tuple(job for job in self.scheduled if not job.removed)


@dataclass
class FakeBot:
    sent_messages: list[tuple[int, str]] = field(default_factory=list)

    async def send_message(self, chat_id: int, text: str) -> None:
        self.sent_messages.append((chat_id, text))


@dataclass
class FakeContext:
    job: FakeJob
    bot: FakeBot


CONTENT = NotificationContent(title="🎉 Birthday Reminder!", body="Today is Alice's birthday!", payload={"record_id": "rec-1"})


def _backend(queue: FakeJobQueue) -> JobQueueNotificationBackend:
    return JobQueueNotificationBackend(job_queue=queue, chat_id=222, timezone="Europe/Berlin")


def test_schedule_localizes_wall_clock_instant() -> None:
    queue = FakeJobQueue()
    backend = _backend(queue)

    registration_id = backend.schedule(CONTENT, NotificationTrigger(instant=datetime(2027, 3, 14, 9, 0), repeats_yearly=True))

    job = queue.scheduled[0]
    assert registration_id.startswith("birthday-")
    assert job.name == registration_id
    assert job.chat_id == 222
    assert job.when == datetime(2027, 3, 14, 9, 0, tzinfo=ZoneInfo("Europe/Berlin"))
    assert [item.registration_id for item in backend.list_all()] == [registration_id]


def test_cancel_is_idempotent_and_cancel_all_only_touches_owned_jobs() -> None:
    queue = FakeJobQueue()
    backend = _backend(queue)
    first = backend.schedule(CONTENT, NotificationTrigger(instant=datetime(2027, 3, 14, 9, 0)))
    backend.schedule(CONTENT, NotificationTrigger(instant=datetime(2027, 4, 1, 9, 0)))
    foreign = queue.run_once(lambda context: None, when=datetime(2027, 1, 1), name="housekeeping")

    backend.cancel(first)
    backend.cancel(first)
    backend.cancel("birthday-unknown")
    assert len(backend.list_all()) == 1

    backend.cancel_all()
    assert backend.list_all() == []
    assert foreign.removed is False


def test_fire_sends_message_and_rearms_next_year() -> None:
    queue = FakeJobQueue()
    backend = _backend(queue)
    backend.schedule(
        CONTENT,
        NotificationTrigger(instant=datetime(2027, 3, 14, 9, 0), repeats_yearly=True, birth_date="03-14"),
    )
    bot = FakeBot()

    asyncio.run(backend._fire(FakeContext(job=queue.scheduled[0], bot=bot)))

    assert bot.sent_messages == [(222, "🎉 Birthday Reminder!\nToday is Alice's birthday!")]
    rearmed = queue.scheduled[1]
    assert rearmed.name == queue.scheduled[0].name
    assert rearmed.data.trigger.instant == datetime(2028, 3, 14, 9, 0)


def test_one_shot_registration_is_not_rearmed() -> None:
    queue = FakeJobQueue()
    backend = _backend(queue)
    backend.schedule(CONTENT, NotificationTrigger(instant=datetime(2027, 3, 14, 9, 0)))

    asyncio.run(backend._fire(FakeContext(job=queue.scheduled[0], bot=FakeBot())))

    assert len(queue.scheduled) == 1


def test_following_trigger_follows_leap_day_rule() -> None:
    trigger = NotificationTrigger(instant=datetime(2027, 2, 28, 9, 0), repeats_yearly=True, birth_date="02-29")

    assert following_trigger(trigger).instant == datetime(2028, 2, 29, 9, 0)
    assert following_trigger(following_trigger(trigger)).instant == datetime(2029, 2, 28, 9, 0)


def test_configure_notification_defaults() -> None:
    defaults = configure_notification_defaults("Europe/Berlin", notification_sound=False)

    assert defaults.tzinfo == ZoneInfo("Europe/Berlin")
    assert defaults.disable_notification is True
