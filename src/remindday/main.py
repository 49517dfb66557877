from __future__ import annotations

import logging
from pathlib import Path

from telegram.ext import Application

from remindday.bot_handlers import HandlerDependencies, build_handlers
from remindday.notifications import JobQueueNotificationBackend, configure_notification_defaults
from remindday.record_store import BirthdayStore
from remindday.registration_index import RegistrationIndex
from remindday.reminder_scheduler import ReminderScheduler, now_in_timezone
from remindday.settings import load_settings
from remindday.transfer_service import BirthdayTransferService

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


async def restore_reminders(application: Application) -> None:
    # JobQueue registrations live in memory only, so every start re-registers them.
    deps: HandlerDependencies = application.bot_data["handler_deps"]
    deps.scheduler.restore(deps.store.get_all())


def main() -> None:
    configure_logging()

    settings = load_settings()
    _ensure_parent(settings.birthday_store_path)
    _ensure_parent(settings.registration_index_path)
    settings.export_dir.mkdir(parents=True, exist_ok=True)

    store = BirthdayStore(settings.birthday_store_path)
    store.ensure_default()
    config = store.load_config()

    defaults = configure_notification_defaults(config.timezone, notification_sound=config.notification_sound)
    application = Application.builder().token(settings.telegram_bot_token).defaults(defaults).build()

    backend = JobQueueNotificationBackend(
        job_queue=application.job_queue,
        chat_id=settings.telegram_allowed_chat_id,
        timezone=config.timezone,
        leap_day_rule=config.leap_day_rule,
    )
    scheduler = ReminderScheduler(
        backend=backend,
        registrations=RegistrationIndex(settings.registration_index_path),
        clock=lambda: now_in_timezone(config.timezone),
        leap_day_rule=config.leap_day_rule,
    )
    transfer = BirthdayTransferService(
        store=store,
        scheduler=scheduler,
        export_dir=settings.export_dir,
        today=lambda: now_in_timezone(config.timezone).date(),
    )
    application.bot_data["handler_deps"] = HandlerDependencies(
        settings=settings,
        store=store,
        scheduler=scheduler,
        transfer=transfer,
    )

    for handler in build_handlers():
        application.add_handler(handler)

    application.post_init = restore_reminders
    LOGGER.info("Starting RemindDay for chat %s in %s", settings.telegram_allowed_chat_id, config.timezone)
    application.run_polling()


if __name__ == "__main__":
    main()
