from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo

from telegram.ext import CallbackContext, JobQueue

from birthminder.date_logic import occurrence_in_year
from birthminder.flag_store import FlagStore
from birthminder.models import CalendarRule, NotificationPayload, PermissionState

LOGGER = logging.getLogger(__name__)

JOB_PREFIX = "birthminder:"
PERMISSION_FLAG_KEY = "notification_permission"


class NotificationService(Protocol):
    async def get_permission_state(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    async def cancel_all(self) -> None: ...

    async def schedule(self, key: str, rule: CalendarRule, payload: NotificationPayload) -> None: ...


def next_fire_datetime(rule: CalendarRule, now: datetime) -> datetime:
    """First moment at or after ``now`` matching the rule, in ``now``'s timezone."""
    fire_at = time(hour=rule.hour, minute=rule.minute)
    candidate = datetime.combine(occurrence_in_year(rule.month, rule.day, now.year), fire_at, tzinfo=now.tzinfo)
    if candidate >= now:
        return candidate
    return datetime.combine(occurrence_in_year(rule.month, rule.day, now.year + 1), fire_at, tzinfo=now.tzinfo)


def job_name(key: str) -> str:
    return f"{JOB_PREFIX}{key}"


class TelegramNotificationService:
    """Delivers notifications as chat messages through the bot's job queue.

    Each key maps to one job named ``birthminder:<key>``. Yearly rules
    re-register themselves for the next year after firing. Permission is the
    chat owner's opt-in, kept in the flag store.
    """

    def __init__(self, *, job_queue: JobQueue, chat_id: int, timezone: str, flags: FlagStore) -> None:
        self._job_queue = job_queue
        self._chat_id = chat_id
        self._tz = ZoneInfo(timezone)
        self._flags = flags

    async def get_permission_state(self) -> PermissionState:
        value = self._flags.get(PERMISSION_FLAG_KEY)
        if value == PermissionState.GRANTED.value:
            return PermissionState.GRANTED
        if value == PermissionState.DENIED.value:
            return PermissionState.DENIED
        return PermissionState.UNDETERMINED

    async def request_permission(self) -> PermissionState:
        self._flags.set(PERMISSION_FLAG_KEY, PermissionState.GRANTED.value)
        return PermissionState.GRANTED

    def set_permission(self, state: PermissionState) -> None:
        if state not in (PermissionState.GRANTED, PermissionState.DENIED):
            raise ValueError(f"Cannot persist permission state: {state.value}")
        self._flags.set(PERMISSION_FLAG_KEY, state.value)

    async def cancel_all(self) -> None:
        removed = 0
        for job in self._job_queue.jobs():
            if job.name and job.name.startswith(JOB_PREFIX):
                job.schedule_removal()
                removed += 1
        LOGGER.debug("Removed %s scheduled notification jobs", removed)

    async def schedule(self, key: str, rule: CalendarRule, payload: NotificationPayload) -> None:
        for job in self._job_queue.get_jobs_by_name(job_name(key)):
            job.schedule_removal()

        when = next_fire_datetime(rule, datetime.now(self._tz))
        self._job_queue.run_once(
            self._deliver,
            when=when,
            name=job_name(key),
            data=(key, rule, payload),
            chat_id=self._chat_id,
        )
        LOGGER.debug("Scheduled %s for %s", key, when.isoformat())

    async def _deliver(self, context: CallbackContext) -> None:
        key, rule, payload = context.job.data

        # Re-arm before the send suspends, so a cancel_all issued meanwhile sees the new job.
        if rule.repeats_yearly:
            # Search from next January so today's already-fired slot is skipped.
            now = datetime.now(self._tz)
            when = next_fire_datetime(rule, now.replace(year=now.year + 1, month=1, day=1, hour=0, minute=0))
            self._job_queue.run_once(
                self._deliver,
                when=when,
                name=job_name(key),
                data=(key, rule, payload),
                chat_id=self._chat_id,
            )

        try:
            await context.bot.send_message(chat_id=self._chat_id, text=f"{payload.title}\n{payload.body}")
        except Exception:
            LOGGER.exception("Failed to deliver notification %s", key)
