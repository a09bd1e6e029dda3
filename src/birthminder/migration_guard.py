from __future__ import annotations

import logging
from collections.abc import Sequence

from birthminder.flag_store import FlagStore
from birthminder.models import BirthdayRecord, PermissionState
from birthminder.notification_scheduler import NotificationScheduler

LOGGER = logging.getLogger(__name__)

# Bump whenever the set of scheduled notifications changes shape (new
# category, new key format, new fire rule) so existing installs rebuild once.
CURRENT_MIGRATION_VERSION = "reminders-v2"

MIGRATION_DONE = "done"


def migration_flag_key(version: str) -> str:
    return f"notification_migration:{version}"


class MigrationGuard:
    def __init__(
        self,
        scheduler: NotificationScheduler,
        flags: FlagStore,
        *,
        version: str = CURRENT_MIGRATION_VERSION,
    ) -> None:
        self._scheduler = scheduler
        self._flags = flags
        self._flag_key = migration_flag_key(version)
        self._running = False
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    async def run_once(self, people: Sequence[BirthdayRecord], permission: PermissionState) -> bool:
        """Force one full rebuild per install and migration version.

        Safe to call on every refresh. Returns True only on the call that
        performed the rebuild.
        """
        if self._done or self._running:
            return False
        if permission in (PermissionState.UNKNOWN, PermissionState.CHECKING) or not people:
            return False

        if self._flags.get(self._flag_key) == MIGRATION_DONE:
            self._done = True
            return False

        self._running = True
        try:
            report = await self._scheduler.schedule_all(people)
            if not report.complete:
                LOGGER.warning("Notification migration incomplete; will retry on next trigger")
                return False
            self._flags.set(self._flag_key, MIGRATION_DONE)
            self._done = True
            LOGGER.info("Notification migration %s completed for %s people", self._flag_key, len(people))
            return True
        except Exception:
            LOGGER.exception("Notification migration failed")
            return False
        finally:
            self._running = False
