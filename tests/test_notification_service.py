from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from fakes import MemoryFlags

from birthminder.models import CalendarRule, NotificationPayload, PermissionState
from birthminder.notification_service import TelegramNotificationService, job_name, next_fire_datetime

TZ = ZoneInfo("America/Los_Angeles")
RULE = CalendarRule(month=3, day=14, hour=8, minute=0, repeats_yearly=True)
PAYLOAD = NotificationPayload(title="Happy Birthday Alice! 🎂", body="Today is Alice's birthday!")


@dataclass
class FakeJob:
    name: str
    when: datetime
    data: object
    removed: bool = False

    def schedule_removal(self) -> None:
        self.removed = True


@dataclass
class FakeJobQueue:
    all_jobs: list[FakeJob] = field(default_factory=list)

    def jobs(self) -> tuple[FakeJob, ...]:
        return tuple(job for job in self.all_jobs if not job.removed)

    def get_jobs_by_name(self, name: str) -> tuple[FakeJob, ...]:
        return tuple(job for job in self.jobs() if job.name == name)

    def run_once(self, callback, when, name=None, data=None, chat_id=None) -> FakeJob:
        job = FakeJob(name=name, when=when, data=data)
        self.all_jobs.append(job)
        return job


@dataclass
class FakeBot:
    sent_messages: list[tuple[int, str]] = field(default_factory=list)

    async def send_message(self, chat_id: int, text: str) -> None:
        self.sent_messages.append((chat_id, text))


def _service(queue: FakeJobQueue, flags: MemoryFlags | None = None) -> TelegramNotificationService:
    return TelegramNotificationService(
        job_queue=queue,
        chat_id=100,
        timezone="America/Los_Angeles",
        flags=flags if flags is not None else MemoryFlags(),
    )


def test_next_fire_later_today() -> None:
    now = datetime(2026, 3, 14, 7, 30, tzinfo=TZ)

    assert next_fire_datetime(RULE, now) == datetime(2026, 3, 14, 8, 0, tzinfo=TZ)


def test_next_fire_rolls_to_next_year_once_passed() -> None:
    now = datetime(2026, 3, 14, 9, 0, tzinfo=TZ)

    assert next_fire_datetime(RULE, now) == datetime(2027, 3, 14, 8, 0, tzinfo=TZ)


def test_next_fire_leap_day_in_common_year() -> None:
    rule = CalendarRule(month=2, day=29, hour=8, minute=0)
    now = datetime(2026, 1, 1, 0, 0, tzinfo=TZ)

    assert next_fire_datetime(rule, now) == datetime(2026, 2, 28, 8, 0, tzinfo=TZ)


def test_schedule_replaces_same_key_and_cancel_all_spares_foreign_jobs() -> None:
    queue = FakeJobQueue()
    queue.run_once(None, when=None, name="daily-maintenance")
    service = _service(queue)

    async def scenario():
        await service.schedule("p-1", RULE, PAYLOAD)
        await service.schedule("p-1", RULE, PAYLOAD)
        await service.schedule("p-1-reminder", RULE, PAYLOAD)
        names_before = sorted(job.name for job in queue.jobs())
        await service.cancel_all()
        return names_before

    names_before = asyncio.run(scenario())

    assert names_before == sorted(["daily-maintenance", job_name("p-1"), job_name("p-1-reminder")])
    assert [job.name for job in queue.jobs()] == ["daily-maintenance"]


def test_delivery_sends_message_and_registers_next_year() -> None:
    queue = FakeJobQueue()
    service = _service(queue)
    bot = FakeBot()
    job = FakeJob(name=job_name("p-1"), when=None, data=("p-1", RULE, PAYLOAD))
    context = SimpleNamespace(job=job, bot=bot)

    asyncio.run(service._deliver(context))

    assert bot.sent_messages == [(100, "Happy Birthday Alice! 🎂\nToday is Alice's birthday!")]
    rescheduled = queue.get_jobs_by_name(job_name("p-1"))
    assert len(rescheduled) == 1
    assert rescheduled[0].when.year == datetime.now(TZ).year + 1
    assert (rescheduled[0].when.month, rescheduled[0].when.day, rescheduled[0].when.hour) == (3, 14, 8)


def test_permission_lifecycle() -> None:
    flags = MemoryFlags()
    service = _service(FakeJobQueue(), flags)

    async def scenario():
        states = [await service.get_permission_state()]
        states.append(await service.request_permission())
        service.set_permission(PermissionState.DENIED)
        states.append(await service.get_permission_state())
        return states

    assert asyncio.run(scenario()) == [
        PermissionState.UNDETERMINED,
        PermissionState.GRANTED,
        PermissionState.DENIED,
    ]


@dataclass
class InterleavingBot:
    """Runs an action while the message send is in flight."""

    action: object = None
    sent_messages: list[str] = field(default_factory=list)

    async def send_message(self, chat_id: int, text: str) -> None:
        await self.action()
        self.sent_messages.append(text)


def _firing_context(bot) -> SimpleNamespace:
    job = FakeJob(name=job_name("p-1"), when=None, data=("p-1", RULE, PAYLOAD))
    return SimpleNamespace(job=job, bot=bot)


def test_rebuild_during_delivery_leaves_one_job_per_key() -> None:
    queue = FakeJobQueue()
    service = _service(queue)

    async def rebuild() -> None:
        await service.cancel_all()
        await service.schedule("p-1", RULE, PAYLOAD)

    asyncio.run(service._deliver(_firing_context(InterleavingBot(action=rebuild))))

    assert len(queue.get_jobs_by_name(job_name("p-1"))) == 1


def test_cancel_during_delivery_leaves_no_jobs() -> None:
    queue = FakeJobQueue()
    service = _service(queue)
    bot = InterleavingBot(action=service.cancel_all)

    asyncio.run(service._deliver(_firing_context(bot)))

    assert queue.jobs() == ()
    assert len(bot.sent_messages) == 1


@dataclass
class FailingBot:
    async def send_message(self, chat_id: int, text: str) -> None:
        raise RuntimeError("network down")


def test_failed_send_keeps_yearly_job() -> None:
    queue = FakeJobQueue()
    service = _service(queue)

    asyncio.run(service._deliver(_firing_context(FailingBot())))

    rescheduled = queue.get_jobs_by_name(job_name("p-1"))
    assert len(rescheduled) == 1
    assert rescheduled[0].when.year == datetime.now(TZ).year + 1
