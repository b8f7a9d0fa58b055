# src/pocket_todo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (key-value store, record store,
  notification platform + scheduler).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_settings
from ..core.ports import KeyValueStore, NotificationPlatform
from ..core.state import AppState
from ..notifications.scheduler import NotificationScheduler
from ..records.api import restore_session
from ..records.store import RecordStore
from ..storage.kv_store import SqliteKeyValueStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_tz(name: str | None) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; using the local zone for reminders.", name)
        return None


def create_initial_state(
    *,
    platform: NotificationPlatform,
    settings=None,
    kv: KeyValueStore | None = None,
    warn: Callable[[str], None] | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings(). If kv is None, the SQLite store at
    settings.store_db_path is used.
    """
    if settings is None:
        settings = get_settings()

    if kv is None:
        _ensure_local_dirs(settings)
        kv = SqliteKeyValueStore(settings.store_db_path)

    records = RecordStore(kv, timeout_seconds=settings.storage_timeout_seconds)
    notifier = NotificationScheduler(
        platform,
        reminder_hour=settings.reminder_hour,
        created_delay_seconds=settings.created_notice_delay_seconds,
        tz=_resolve_tz(settings.timezone),
        warn=warn,
    )
    return AppState(settings=settings, records=records, notifier=notifier)


async def start_app(state: AppState) -> None:
    """Startup sequence: storage init, session restore, notification permission."""
    await state.records.initialize()
    user = await restore_session(state)
    if user is not None:
        logger.info("Restored session for user_id=%s", user.id)
    await state.notifier.request_permission()
