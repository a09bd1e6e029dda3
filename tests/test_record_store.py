from pathlib import Path

import pytest

from birthminder.models import BirthdayRecord
from birthminder.record_store import (
    AppData,
    StoredPerson,
    TomlRecordStore,
    ensure_default_data,
    load_data,
    save_data_atomic,
)


def test_roundtrip_data(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    data = AppData(
        timezone="America/Los_Angeles",
        preferences={42: 3},
        people=[
            StoredPerson(
                user_id=42,
                record=BirthdayRecord(id="p-1", name='Al "The" Pal', month=2, day=29, year=2000, reminder_offsets=[1, 7]),
            )
        ],
    )

    save_data_atomic(path, data)
    loaded = load_data(path)

    assert loaded.timezone == "America/Los_Angeles"
    assert loaded.preferences == {42: 3}
    assert loaded.people[0].record.name == 'Al "The" Pal'
    assert loaded.people[0].record.reminder_offsets == [7, 1]


def test_default_data_created_once(tmp_path: Path) -> None:
    path = tmp_path / "config" / "birthdays.toml"
    ensure_default_data(path)
    store = TomlRecordStore(path)

    assert store.timezone == "America/Los_Angeles"
    assert store.list_people(1) == []
    assert store.get_preference(1) is None


def test_add_list_and_remove_people_per_user(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    ensure_default_data(path)
    store = TomlRecordStore(path)

    alice = store.add_person(1, name=" Alice ", month=3, day=14, year=1990)
    store.add_person(2, name="Bob", month=8, day=22)

    assert alice.name == "Alice"
    assert alice.reminder_offsets == [0]
    assert [person.name for person in store.list_people(1)] == ["Alice"]

    store.remove_person(1, alice.id)

    assert store.list_people(1) == []
    assert [person.name for person in store.list_people(2)] == ["Bob"]


def test_remove_unknown_person_raises(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    ensure_default_data(path)

    with pytest.raises(KeyError):
        TomlRecordStore(path).remove_person(1, "missing")


def test_preference_persists(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    ensure_default_data(path)
    TomlRecordStore(path).set_preference(5, 7)

    assert TomlRecordStore(path).get_preference(5) == 7


def test_invalid_day_rejected(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    path.write_text(
        """
timezone = "America/Los_Angeles"

[[people]]
id = "p-1"
user_id = 1
name = "Alice"
month = 4
day = 31
""".strip()
        + "\n",
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        load_data(path)


def test_negative_offset_rejected(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    path.write_text(
        """
timezone = "America/Los_Angeles"

[[people]]
id = "p-1"
user_id = 1
name = "Alice"
month = 3
day = 14
reminder_offsets = [-1]
""".strip()
        + "\n",
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        load_data(path)


def test_duplicate_ids_rejected(tmp_path: Path) -> None:
    record = BirthdayRecord(id="same", name="A", month=1, day=1)

    with pytest.raises(ValueError):
        save_data_atomic(
            tmp_path / "birthdays.toml",
            AppData(
                timezone="UTC",
                preferences={},
                people=[StoredPerson(user_id=1, record=record), StoredPerson(user_id=1, record=record)],
            ),
        )


def test_group_roundtrip_and_clear(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    ensure_default_data(path)
    store = TomlRecordStore(path)
    alice = store.add_person(1, name="Alice", month=3, day=14, group=" Book  Club ")

    assert alice.group == "Book Club"
    assert TomlRecordStore(path).list_people(1)[0].group == "Book Club"

    store.set_group(1, alice.id, None)

    assert TomlRecordStore(path).list_people(1)[0].group is None


def test_set_group_for_other_users_person_raises(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.toml"
    ensure_default_data(path)
    store = TomlRecordStore(path)
    alice = store.add_person(1, name="Alice", month=3, day=14)

    with pytest.raises(KeyError):
        store.set_group(2, alice.id, "Family")
