from __future__ import annotations

import logging
from typing import Protocol

from birthminder.models import DEFAULT_DAYS_BEFORE, REMINDER_DAYS_OPTIONS

LOGGER = logging.getLogger(__name__)


class PreferenceSaveError(RuntimeError):
    pass


class PreferenceBackend(Protocol):
    def get_preference(self, user_id: int) -> int | None: ...

    def set_preference(self, user_id: int, days_before: int) -> None: ...


class PreferenceStore:
    def __init__(self, backend: PreferenceBackend, user_id: int) -> None:
        self._backend = backend
        self._user_id = user_id

    def load(self) -> int:
        """Stored "remind me N days before" value, or 0 when unset or unreadable."""
        try:
            value = self._backend.get_preference(self._user_id)
        except Exception:
            LOGGER.warning("Could not read reminder preference for %s; using default", self._user_id, exc_info=True)
            return DEFAULT_DAYS_BEFORE

        if value is None:
            return DEFAULT_DAYS_BEFORE
        if value not in REMINDER_DAYS_OPTIONS:
            LOGGER.warning("Ignoring unsupported reminder preference %s for %s", value, self._user_id)
            return DEFAULT_DAYS_BEFORE
        return value

    def save(self, days_before: int) -> None:
        if days_before not in REMINDER_DAYS_OPTIONS:
            raise ValueError(f"days_before must be one of {list(REMINDER_DAYS_OPTIONS)}")

        try:
            self._backend.set_preference(self._user_id, days_before)
        except Exception as exc:
            raise PreferenceSaveError(f"Could not save reminder preference: {exc}") from exc
