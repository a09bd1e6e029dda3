from pathlib import Path

from birthminder.flag_store import FlagStore


def test_missing_file_reads_as_empty(tmp_path: Path) -> None:
    assert FlagStore(tmp_path / "flags.json").get("anything") is None


def test_flags_persist_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "flags.json"
    FlagStore(path).set("notification_migration:v2", "done")

    reopened = FlagStore(path)

    assert reopened.get("notification_migration:v2") == "done"
    assert [p.name for p in path.parent.iterdir()] == ["flags.json"]
