from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path


class FlagStore:
    """Small persisted key/value map, rewritten atomically on every change."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._flags = load_flags(path)

    def get(self, key: str) -> str | None:
        return self._flags.get(key)

    def set(self, key: str, value: str) -> None:
        updated = {**self._flags, key: value}
        save_flags_atomic(self._path, updated)
        self._flags = updated


def load_flags(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    with path.open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)

    flags = data.get("flags", {})
    if not isinstance(flags, dict):
        return {}
    return {str(key): str(value) for key, value in flags.items()}


def save_flags_atomic(path: Path, flags: dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"version": 1, "flags": flags}

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        json.dump(payload, temp_file, indent=2, sort_keys=True)
        temp_file.write("\n")
        temp_name = temp_file.name

    os.replace(temp_name, path)
