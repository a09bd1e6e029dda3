from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

from birthminder.models import DEFAULT_DAYS_BEFORE, BirthdayRecord, PermissionState
from birthminder.notification_service import NotificationService
from birthminder.reminder_policy import desired_notifications

LOGGER = logging.getLogger(__name__)


@dataclass
class RebuildReport:
    cancelled: bool = False
    scheduled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.cancelled and not self.failed


class NotificationScheduler:
    """Keeps the notification registry in sync with the tracked people.

    The registry cannot be read back, so every rebuild wipes it and schedules
    the full desired set again. Overlapping ``schedule_all`` calls are
    collapsed: while a rebuild runs, newer requests replace each other and the
    most recent one runs once the current pass finishes.
    """

    def __init__(
        self,
        service: NotificationService,
        *,
        today_provider: Callable[[], date],
        days_before: int = DEFAULT_DAYS_BEFORE,
    ) -> None:
        self._service = service
        self._today_provider = today_provider
        self._days_before = days_before
        self._permission = PermissionState.UNKNOWN
        self._pending: list[BirthdayRecord] | None = None
        self._runner: asyncio.Task[RebuildReport] | None = None

    @property
    def permission(self) -> PermissionState:
        return self._permission

    @property
    def days_before(self) -> int:
        return self._days_before

    @days_before.setter
    def days_before(self, value: int) -> None:
        self._days_before = value

    async def check_permission(self) -> PermissionState:
        self._permission = PermissionState.CHECKING
        self._permission = await self._service.get_permission_state()

        if self._permission == PermissionState.UNDETERMINED:
            if not await self.request_permission():
                LOGGER.warning("Notification permission denied after request")
        elif self._permission == PermissionState.DENIED:
            LOGGER.warning("Notification permission is denied; it must be re-enabled in settings")

        return self._permission

    async def request_permission(self) -> bool:
        if self._permission == PermissionState.DENIED:
            return False
        if self._permission == PermissionState.GRANTED:
            return True

        self._permission = await self._service.request_permission()
        return self._permission == PermissionState.GRANTED

    async def schedule_all(self, people: Sequence[BirthdayRecord]) -> RebuildReport:
        self._pending = list(people)
        if self._runner is None or self._runner.done():
            self._runner = asyncio.ensure_future(self._drain())
        return await asyncio.shield(self._runner)

    async def _drain(self) -> RebuildReport:
        report = RebuildReport()
        while self._pending is not None:
            people, self._pending = self._pending, None
            report = await self._rebuild(people)
        return report

    async def _rebuild(self, people: list[BirthdayRecord]) -> RebuildReport:
        report = RebuildReport()
        try:
            await self._service.cancel_all()
        except Exception:
            LOGGER.exception("Failed to cancel scheduled notifications; skipping rebuild")
            return report
        report.cancelled = True

        if self._permission != PermissionState.GRANTED:
            if self._permission not in (PermissionState.UNKNOWN, PermissionState.CHECKING):
                LOGGER.warning("Skipping scheduling: permission is %s", self._permission.value)
            return report

        today = self._today_provider()
        days_before = self._days_before
        for person in people:
            try:
                desired = desired_notifications(person, days_before, today)
            except Exception:
                LOGGER.exception("Failed to build notifications for %s", person.id)
                report.failed.append(person.id)
                continue

            for notification in desired:
                try:
                    await self._service.schedule(notification.key, notification.rule, notification.payload)
                except Exception:
                    LOGGER.exception("Failed to schedule notification %s", notification.key)
                    report.failed.append(notification.key)
                    continue
                report.scheduled.append(notification.key)

        LOGGER.info(
            "Scheduled %s notifications for %s people (%s failed)",
            len(report.scheduled),
            len(people),
            len(report.failed),
        )
        return report
