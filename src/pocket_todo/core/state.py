# src/pocket_todo/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from ..notifications.scheduler import NotificationScheduler
from ..records.models import CurrentUser
from ..records.store import RecordStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    records: RecordStore
    notifier: NotificationScheduler

    # Explicit session; mirrors the persisted current-user slot.
    session: CurrentUser | None = None

    # task id -> id of its pending due-date reminder
    reminders: dict[int, str] = field(default_factory=dict)

    # Fire-and-forget reminder jobs (kept referenced until they finish).
    background: set[asyncio.Task[Any]] = field(default_factory=set)

    # Console preference for /list ordering.
    sort_by: str = "due_date"
