from __future__ import annotations

import hashlib
from datetime import date

from birthminder.date_logic import reminder_date
from birthminder.models import (
    NOTIFY_HOUR,
    NOTIFY_MINUTE,
    BirthdayRecord,
    CalendarRule,
    DesiredNotification,
    NotificationPayload,
)

CELEBRATION_TITLE = "Happy Birthday {person_name}! 🎂"

CELEBRATION_TEMPLATES = (
    "Today is {person_name}'s birthday!",
    "🎉 Today belongs to {person_name}. Go make it count.",
    "🎈 {person_name} leveled up today. Achievement unlocked.",
    "📢 Public service announcement: {person_name} was born on this day. Cake is appropriate.",
)

REMINDER_TITLE = "Upcoming birthday: {person_name}"

TOMORROW_TEMPLATES = (
    "⏳ 24-hour warning. {person_name}'s birthday is tomorrow.",
    "🎁 Heads up - {person_name}'s big day is tomorrow.",
    "🎈 One sleep left until {person_name}'s birthday.",
)

IN_DAYS_TEMPLATES = (
    "📆 Countdown: {days_until} days until {person_name}'s birthday.",
    "🎉 {person_name}'s birthday is in {days_until} days.",
    "⌛ T-minus {days_until} days until {person_name} Day.",
    "🧁 {days_until} days left to prepare for {person_name}'s birthday.",
)


def celebration_key(person_id: str) -> str:
    return person_id


def reminder_key(person_id: str) -> str:
    return f"{person_id}-reminder"


def desired_notifications(
    person: BirthdayRecord,
    days_before: int,
    today: date,
) -> list[DesiredNotification]:
    """Notifications one person should have registered.

    Always a yearly celebration alert on the birthday itself. When
    ``days_before`` is positive, also a yearly advance reminder pinned to the
    calendar day ``days_before`` days ahead of the next occurrence.
    ``person.reminder_offsets`` is intentionally not consulted: the advance
    reminder follows the single global preference.
    """
    desired = [
        DesiredNotification(
            key=celebration_key(person.id),
            rule=CalendarRule(
                month=person.month,
                day=person.day,
                hour=NOTIFY_HOUR,
                minute=NOTIFY_MINUTE,
                repeats_yearly=True,
            ),
            payload=NotificationPayload(
                title=CELEBRATION_TITLE.format(person_name=person.name),
                body=_render_body(person.id, "celebration", CELEBRATION_TEMPLATES, person_name=person.name),
            ),
        )
    ]

    if days_before > 0:
        fire_date = reminder_date(person.month, person.day, today, days_before)
        templates = TOMORROW_TEMPLATES if days_before == 1 else IN_DAYS_TEMPLATES
        desired.append(
            DesiredNotification(
                key=reminder_key(person.id),
                rule=CalendarRule(
                    month=fire_date.month,
                    day=fire_date.day,
                    hour=NOTIFY_HOUR,
                    minute=NOTIFY_MINUTE,
                    repeats_yearly=True,
                ),
                payload=NotificationPayload(
                    title=REMINDER_TITLE.format(person_name=person.name),
                    body=_render_body(
                        person.id,
                        f"reminder-{days_before}",
                        templates,
                        person_name=person.name,
                        days_until=days_before,
                    ),
                ),
            )
        )

    return desired


def _render_body(person_id: str, variant_group: str, templates: tuple[str, ...], **values) -> str:
    # Same person and variant always pick the same template.
    seed = f"{person_id}|{variant_group}"
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "big") % len(templates)
    return templates[index].format(**values)
