# src/pocket_todo/notifications/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class NotificationContent:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NotificationTrigger:
    """
    When a notification fires: either `seconds` after scheduling, or at an absolute time `at`.

    Exactly one of the two is set; use the constructors.
    """

    seconds: float | None = None
    at: datetime | None = None

    @classmethod
    def after(cls, seconds: float) -> NotificationTrigger:
        return cls(seconds=max(0.0, float(seconds)))

    @classmethod
    def at_time(cls, when: datetime) -> NotificationTrigger:
        if when.tzinfo is None:
            raise ValueError("trigger time must be timezone-aware")
        return cls(at=when)

    def delay_from(self, now: datetime) -> float:
        """Seconds until the trigger fires, measured from `now` (never negative)."""
        if self.seconds is not None:
            return self.seconds
        if self.at is None:
            return 0.0
        return max(0.0, (self.at - now).total_seconds())
