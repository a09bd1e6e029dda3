from __future__ import annotations

import os
import tempfile
import tomllib
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from birthminder.date_logic import InvalidBirthdayError, validate_month_day
from birthminder.models import DEFAULT_REMINDER_OFFSETS, BirthdayRecord

DEFAULT_TIMEZONE = "America/Los_Angeles"


@dataclass(frozen=True)
class StoredPerson:
    user_id: int
    record: BirthdayRecord


@dataclass(frozen=True)
class AppData:
    timezone: str
    preferences: dict[int, int]
    people: list[StoredPerson]


def _toml_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _validate_offsets(offsets: list[int]) -> list[int]:
    if not offsets:
        return list(DEFAULT_REMINDER_OFFSETS)
    if any((not isinstance(offset, int) or offset < 0) for offset in offsets):
        raise ValueError("reminder_offsets values must be non-negative integers")

    return sorted(set(offsets), reverse=True)


def _validate_group(group: str | None) -> str | None:
    if group is None:
        return None
    cleaned = " ".join(group.split())
    return cleaned or None


def validate_record(record: BirthdayRecord) -> BirthdayRecord:
    person_id = record.id.strip()
    if not person_id:
        raise ValueError("birthday id must not be empty")

    name = record.name.strip()
    if not name:
        raise ValueError("birthday name must not be empty")

    try:
        validate_month_day(record.month, record.day, allow_feb_29=True)
    except InvalidBirthdayError as exc:
        raise ValueError(str(exc)) from exc

    if record.year is not None and (record.year < 1900 or record.year > 3000):
        raise ValueError("year must be between 1900 and 3000 when provided")

    return BirthdayRecord(
        id=person_id,
        name=name,
        month=int(record.month),
        day=int(record.day),
        year=int(record.year) if record.year is not None else None,
        reminder_offsets=_validate_offsets(list(record.reminder_offsets)),
        group=_validate_group(record.group),
    )


def validate_data(data: AppData) -> AppData:
    timezone = data.timezone.strip()
    if not timezone:
        raise ValueError("timezone must not be empty")
    try:
        ZoneInfo(timezone)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone: {timezone}") from exc

    people = [StoredPerson(user_id=person.user_id, record=validate_record(person.record)) for person in data.people]
    ids = [person.record.id for person in people]
    if len(ids) != len(set(ids)):
        raise ValueError("birthday ids must be unique")

    return AppData(timezone=timezone, preferences=dict(data.preferences), people=people)


def load_data(path: Path) -> AppData:
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    with path.open("rb") as file_obj:
        data = tomllib.load(file_obj)

    people: list[StoredPerson] = []
    for row in data.get("people", []):
        people.append(
            StoredPerson(
                user_id=int(row.get("user_id", 0)),
                record=BirthdayRecord(
                    id=str(row.get("id", "")),
                    name=str(row.get("name", "")),
                    month=int(row.get("month", 0)),
                    day=int(row.get("day", 0)),
                    year=int(row["year"]) if row.get("year") is not None else None,
                    reminder_offsets=[int(v) for v in row.get("reminder_offsets", [])],
                    group=str(row["group"]) if row.get("group") is not None else None,
                ),
            )
        )

    preferences = {int(user_id): int(days) for user_id, days in data.get("preferences", {}).items()}

    return validate_data(
        AppData(
            timezone=str(data.get("timezone", "")),
            preferences=preferences,
            people=people,
        )
    )


def render_data(data: AppData) -> str:
    validated = validate_data(data)

    lines: list[str] = [f'timezone = "{_toml_escape(validated.timezone)}"', "", "[preferences]"]
    for user_id, days_before in sorted(validated.preferences.items()):
        lines.append(f'"{user_id}" = {days_before}')
    lines.append("")

    for person in validated.people:
        record = person.record
        lines.append("[[people]]")
        lines.append(f'id = "{_toml_escape(record.id)}"')
        lines.append(f"user_id = {person.user_id}")
        lines.append(f'name = "{_toml_escape(record.name)}"')
        lines.append(f"month = {record.month}")
        lines.append(f"day = {record.day}")
        if record.year is not None:
            lines.append(f"year = {record.year}")
        offsets = ", ".join(str(offset) for offset in record.reminder_offsets)
        lines.append(f"reminder_offsets = [{offsets}]")
        if record.group is not None:
            lines.append(f'group = "{_toml_escape(record.group)}"')
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def save_data_atomic(path: Path, data: AppData) -> None:
    rendered = render_data(data)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        temp_file.write(rendered)
        temp_name = temp_file.name

    os.replace(temp_name, path)


def ensure_default_data(path: Path) -> None:
    if path.exists():
        return
    save_data_atomic(path, AppData(timezone=DEFAULT_TIMEZONE, preferences={}, people=[]))


class TomlRecordStore:
    """Record store over a single TOML file; every write rewrites the file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def timezone(self) -> str:
        return load_data(self._path).timezone

    def get_preference(self, user_id: int) -> int | None:
        return load_data(self._path).preferences.get(user_id)

    def set_preference(self, user_id: int, days_before: int) -> None:
        data = load_data(self._path)
        save_data_atomic(self._path, replace(data, preferences={**data.preferences, user_id: days_before}))

    def list_people(self, user_id: int) -> list[BirthdayRecord]:
        return [person.record for person in load_data(self._path).people if person.user_id == user_id]

    def add_person(
        self,
        user_id: int,
        *,
        name: str,
        month: int,
        day: int,
        year: int | None = None,
        reminder_offsets: list[int] | None = None,
        group: str | None = None,
    ) -> BirthdayRecord:
        data = load_data(self._path)
        record = validate_record(
            BirthdayRecord(
                id=str(uuid.uuid4()),
                name=name,
                month=month,
                day=day,
                year=year,
                reminder_offsets=list(reminder_offsets or DEFAULT_REMINDER_OFFSETS),
                group=group,
            )
        )
        save_data_atomic(self._path, replace(data, people=[*data.people, StoredPerson(user_id=user_id, record=record)]))
        return record

    def remove_person(self, user_id: int, person_id: str) -> BirthdayRecord:
        data = load_data(self._path)
        for person in data.people:
            if person.user_id == user_id and person.record.id == person_id:
                remaining = [other for other in data.people if other is not person]
                save_data_atomic(self._path, replace(data, people=remaining))
                return person.record
        raise KeyError(person_id)

    def set_group(self, user_id: int, person_id: str, group: str | None) -> BirthdayRecord:
        data = load_data(self._path)
        people: list[StoredPerson] = []
        updated: BirthdayRecord | None = None
        for person in data.people:
            if person.user_id == user_id and person.record.id == person_id:
                updated = validate_record(replace(person.record, group=group))
                person = StoredPerson(user_id=user_id, record=updated)
            people.append(person)

        if updated is None:
            raise KeyError(person_id)
        save_data_atomic(self._path, replace(data, people=people))
        return updated
