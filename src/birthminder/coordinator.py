from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from birthminder.date_logic import age_on_next_occurrence, days_until, next_occurrence
from birthminder.migration_guard import MigrationGuard
from birthminder.models import BirthdayRecord, PermissionState
from birthminder.notification_scheduler import NotificationScheduler, RebuildReport
from birthminder.notification_service import TelegramNotificationService
from birthminder.preference_store import PreferenceStore
from birthminder.record_store import TomlRecordStore

LOGGER = logging.getLogger(__name__)


def local_today(timezone_name: str) -> date:
    return datetime.now(ZoneInfo(timezone_name)).date()


@dataclass(frozen=True)
class BirthdayListRow:
    person_id: str
    name: str
    days_until: int
    next_date: date
    turning_age: int | None
    group: str | None = None


def build_rows(people: list[BirthdayRecord], today: date) -> list[BirthdayListRow]:
    rows = [
        BirthdayListRow(
            person_id=person.id,
            name=person.name,
            days_until=days_until(person.month, person.day, today),
            next_date=next_occurrence(person.month, person.day, today),
            turning_age=age_on_next_occurrence(person.year, person.month, person.day, today),
            group=person.group,
        )
        for person in people
    ]
    rows.sort(key=lambda row: (row.days_until, row.name.lower()))
    return rows


class ReminderCoordinator:
    """Single owner of rebuild triggers.

    Every change to people, preference or permission goes through here and
    ends in one ``schedule_all`` call.
    """

    def __init__(
        self,
        *,
        user_id: int,
        records: TomlRecordStore,
        preferences: PreferenceStore,
        scheduler: NotificationScheduler,
        service: TelegramNotificationService,
        migration: MigrationGuard,
    ) -> None:
        self._user_id = user_id
        self._records = records
        self._preferences = preferences
        self._scheduler = scheduler
        self._service = service
        self._migration = migration

    @property
    def permission(self) -> PermissionState:
        return self._scheduler.permission

    @property
    def days_before(self) -> int:
        return self._scheduler.days_before

    def people(self) -> list[BirthdayRecord]:
        return self._records.list_people(self._user_id)

    def upcoming(self, today: date, group: str | None = None) -> list[BirthdayListRow]:
        people = self.people()
        if group is not None:
            wanted = group.casefold()
            people = [person for person in people if person.group is not None and person.group.casefold() == wanted]
        return build_rows(people, today)

    def groups(self) -> list[str]:
        return sorted({person.group for person in self.people() if person.group is not None}, key=str.casefold)

    def search(self, query: str) -> list[BirthdayRecord]:
        """People whose name contains ``query``, case-insensitively, sorted by name."""
        people = sorted(self.people(), key=lambda person: person.name.casefold())
        needle = query.strip().casefold()
        if not needle:
            return people
        return [person for person in people if needle in person.name.casefold()]

    def set_group(self, person_id: str, group: str | None) -> BirthdayRecord:
        record = self._records.set_group(self._user_id, person_id, group)
        LOGGER.info("Moved %s to group %s", record.name, record.group)
        return record

    async def start(self) -> RebuildReport | None:
        await self._scheduler.check_permission()
        return await self.refresh()

    async def refresh(self) -> RebuildReport | None:
        self._scheduler.days_before = self._preferences.load()
        people = self.people()

        if await self._migration.run_once(people, self._scheduler.permission):
            return None
        return await self._scheduler.schedule_all(people)

    async def set_days_before(self, days_before: int) -> None:
        self._preferences.save(days_before)
        self._scheduler.days_before = days_before
        if self._scheduler.permission == PermissionState.GRANTED:
            await self._scheduler.schedule_all(self.people())

    async def enable(self) -> bool:
        if self._scheduler.permission == PermissionState.DENIED:
            # The owner flipping the setting back on is the settings-app path.
            self._service.set_permission(PermissionState.GRANTED)
            await self._scheduler.check_permission()
        else:
            await self._scheduler.request_permission()

        if self._scheduler.permission != PermissionState.GRANTED:
            return False
        await self.refresh()
        return True

    async def disable(self) -> None:
        self._service.set_permission(PermissionState.DENIED)
        await self._scheduler.check_permission()
        await self._scheduler.schedule_all(self.people())

    async def add_person(self, *, name: str, month: int, day: int, year: int | None) -> BirthdayRecord:
        record = self._records.add_person(self._user_id, name=name, month=month, day=day, year=year)
        LOGGER.info("Added birthday for %s", record.name)
        await self.refresh()
        return record

    async def remove_person(self, person_id: str) -> BirthdayRecord:
        record = self._records.remove_person(self._user_id, person_id)
        LOGGER.info("Removed birthday for %s", record.name)
        await self.refresh()
        return record
