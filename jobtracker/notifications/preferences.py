"""Per-user notification preferences keyed by notification type."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger


class NotificationType(str, Enum):
    JOB_ASSIGNED = "job_assigned"
    JOB_COMPLETED = "job_completed"
    JOB_STATUS_CHANGED = "job_status_changed"
    NOTE_ADDED = "note_added"
    NOTE_MENTIONED = "note_mentioned"
    TEAM_INVITED = "team_invited"
    TEAM_ROLE_CHANGED = "team_role_changed"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    PUSH = "push"


def _all_enabled() -> dict[NotificationType, bool]:
    return {t: True for t in NotificationType}


def _parse_flags(raw: dict[str, Any] | None, column: str) -> dict[NotificationType, bool]:
    """Build a complete flag map, defaulting missing types to enabled."""
    flags = _all_enabled()
    for key, value in (raw or {}).items():
        try:
            flags[NotificationType(key)] = bool(value)
        except ValueError:
            logger.warning(f"Ignoring unknown notification type '{key}' in {column}")
    return flags


@dataclass
class NotificationPreferences:
    """Email and push switches for every notification type."""

    user_id: str
    email_enabled: dict[NotificationType, bool] = field(default_factory=_all_enabled)
    push_enabled: dict[NotificationType, bool] = field(default_factory=_all_enabled)
    id: str | None = None

    def _flags(self, channel: NotificationChannel) -> dict[NotificationType, bool]:
        if channel == NotificationChannel.EMAIL:
            return self.email_enabled
        return self.push_enabled

    def is_enabled(self, channel: NotificationChannel, type: NotificationType) -> bool:
        return self._flags(channel)[type]

    def set(self, channel: NotificationChannel, type: NotificationType, enabled: bool) -> None:
        self._flags(channel)[type] = enabled

    def enabled_types(self, channel: NotificationChannel) -> list[NotificationType]:
        return [t for t, on in self._flags(channel).items() if on]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "email_enabled": {t.value: v for t, v in self.email_enabled.items()},
            "push_enabled": {t.value: v for t, v in self.push_enabled.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationPreferences:
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            email_enabled=_parse_flags(data.get("email_enabled"), "email_enabled"),
            push_enabled=_parse_flags(data.get("push_enabled"), "push_enabled"),
        )
