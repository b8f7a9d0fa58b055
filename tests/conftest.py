# tests/conftest.py

from __future__ import annotations

from datetime import UTC
from pathlib import Path
from types import SimpleNamespace

import pytest

from pocket_todo.core.state import AppState
from pocket_todo.notifications.scheduler import NotificationScheduler
from pocket_todo.records.store import RecordStore

from .fakes import FakeClock, FakePlatform, InMemoryKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="pocket-todo-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        store_db_path=tmp_path / "store.sqlite3",
        storage_timeout_seconds=1.0,
        notifications_enabled=True,
        reminder_hour=9,
        created_notice_delay_seconds=2.0,
        timezone="UTC",
    )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(kv: InMemoryKeyValueStore, clock: FakeClock) -> RecordStore:
    return RecordStore(kv, timeout_seconds=1.0, clock=clock)


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def state(settings: SimpleNamespace, store: RecordStore, platform: FakePlatform) -> AppState:
    """
    AppState wired with in-memory storage and a recording notification platform.
    """
    return AppState(
        settings=settings,
        records=store,
        notifier=NotificationScheduler(platform, tz=UTC),
    )
