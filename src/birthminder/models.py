from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


REMINDER_DAYS_OPTIONS = (0, 1, 3, 7)
DEFAULT_DAYS_BEFORE = 0
DEFAULT_REMINDER_OFFSETS = [0]
NOTIFY_HOUR = 8
NOTIFY_MINUTE = 0


class PermissionState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class BirthdayRecord:
    id: str
    name: str
    month: int
    day: int
    year: int | None = None
    reminder_offsets: list[int] = field(default_factory=lambda: list(DEFAULT_REMINDER_OFFSETS))
    group: str | None = None


@dataclass(frozen=True)
class CalendarRule:
    month: int
    day: int
    hour: int
    minute: int
    repeats_yearly: bool = True


@dataclass(frozen=True)
class NotificationPayload:
    title: str
    body: str


@dataclass(frozen=True)
class DesiredNotification:
    key: str
    rule: CalendarRule
    payload: NotificationPayload
