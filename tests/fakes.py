from __future__ import annotations

from dataclasses import dataclass, field

from birthminder.models import CalendarRule, NotificationPayload, PermissionState


@dataclass
class FakeNotificationService:
    permission: PermissionState = PermissionState.GRANTED
    request_result: PermissionState = PermissionState.GRANTED
    fail_keys: set[str] = field(default_factory=set)
    fail_cancel: bool = False
    calls: list[tuple] = field(default_factory=list)
    registry: dict[str, tuple[CalendarRule, NotificationPayload]] = field(default_factory=dict)

    async def get_permission_state(self) -> PermissionState:
        self.calls.append(("get_permission_state",))
        return self.permission

    async def request_permission(self) -> PermissionState:
        self.calls.append(("request_permission",))
        self.permission = self.request_result
        return self.request_result

    async def cancel_all(self) -> None:
        self.calls.append(("cancel_all",))
        if self.fail_cancel:
            raise RuntimeError("cancel failed")
        self.registry.clear()

    async def schedule(self, key: str, rule: CalendarRule, payload: NotificationPayload) -> None:
        self.calls.append(("schedule", key))
        if key in self.fail_keys:
            raise RuntimeError(f"schedule failed for {key}")
        self.registry[key] = (rule, payload)

    def set_permission(self, state: PermissionState) -> None:
        self.calls.append(("set_permission", state))
        self.permission = state

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@dataclass
class MemoryFlags:
    values: dict[str, str] = field(default_factory=dict)
    fail_set: bool = False

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_set:
            raise OSError("disk full")
        self.values[key] = value
