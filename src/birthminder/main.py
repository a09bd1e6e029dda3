from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from telegram.ext import Application

from birthminder.bot_handlers import HandlerDependencies, build_handlers
from birthminder.coordinator import ReminderCoordinator, local_today
from birthminder.flag_store import FlagStore
from birthminder.migration_guard import MigrationGuard
from birthminder.notification_scheduler import NotificationScheduler
from birthminder.notification_service import TelegramNotificationService
from birthminder.preference_store import PreferenceStore
from birthminder.record_store import TomlRecordStore, ensure_default_data
from birthminder.settings import load_settings


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


async def startup_rebuild(application: Application) -> None:
    coordinator: ReminderCoordinator = application.bot_data["coordinator"]
    await coordinator.start()


def main() -> None:
    configure_logging()

    settings = load_settings()
    _ensure_parent(settings.data_path)
    _ensure_parent(settings.flags_path)
    ensure_default_data(settings.data_path)

    records = TomlRecordStore(settings.data_path)
    flags = FlagStore(settings.flags_path)
    timezone = records.timezone

    def today() -> date:
        return local_today(timezone)

    application = Application.builder().token(settings.telegram_bot_token).build()

    service = TelegramNotificationService(
        job_queue=application.job_queue,
        chat_id=settings.telegram_allowed_chat_id,
        timezone=timezone,
        flags=flags,
    )
    scheduler = NotificationScheduler(service, today_provider=today)
    coordinator = ReminderCoordinator(
        user_id=settings.telegram_allowed_user_id,
        records=records,
        preferences=PreferenceStore(records, settings.telegram_allowed_user_id),
        scheduler=scheduler,
        service=service,
        migration=MigrationGuard(scheduler, flags),
    )

    application.bot_data["settings"] = settings
    application.bot_data["coordinator"] = coordinator
    application.bot_data["handler_deps"] = HandlerDependencies(
        settings=settings,
        coordinator=coordinator,
        today_provider=today,
    )

    for handler in build_handlers():
        application.add_handler(handler)

    application.post_init = startup_rebuild
    application.run_polling()


if __name__ == "__main__":
    main()
