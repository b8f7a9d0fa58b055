# tests/test_record_store.py

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path

import pytest

from pocket_todo.errors import (
    DuplicateEmailError,
    ImmutableFieldError,
    InvalidTaskError,
    NoUserLoggedInError,
    StorageUnavailableError,
    TaskNotFoundError,
)
from pocket_todo.records.models import CurrentUser, TaskPriority, TaskStatus
from pocket_todo.records.store import RecordStore
from pocket_todo.storage.kv_store import SqliteKeyValueStore

from .fakes import InMemoryKeyValueStore


async def _login(store: RecordStore, email: str = "ann@example.com") -> CurrentUser:
    await store.register_user(email, "secret")
    user = await store.validate_user(email, "secret")
    assert user is not None
    return user


@pytest.mark.asyncio
async def test_initialize_creates_missing_collections_only(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    kv.data["tasks"] = '[{"id": 7}]'

    await store.initialize()
    await store.initialize()

    assert kv.data["users"] == "[]"
    assert kv.data["tasks"] == '[{"id": 7}]'
    assert "categories" not in kv.data
    assert kv.writes == ["users"]


@pytest.mark.asyncio
async def test_register_duplicate_email_keeps_users_unchanged(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    first = await store.register_user("ann@example.com", "pw1")
    assert first.id == 1

    with pytest.raises(DuplicateEmailError):
        await store.register_user("ann@example.com", "pw2")

    users = json.loads(kv.data["users"])
    assert len(users) == 1
    assert users[0]["password"] == "pw1"

    # Case-sensitive as stored.
    other = await store.register_user("Ann@example.com", "pw3")
    assert other.id == 2


@pytest.mark.asyncio
async def test_validate_user_logs_in_without_password(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    registered = await store.register_user("ann@example.com", "secret")

    assert await store.validate_user("ann@example.com", "wrong") is None
    assert await store.get_current_user() is None

    user = await store.validate_user("ann@example.com", "secret")
    assert user == CurrentUser(id=registered.id, email="ann@example.com")
    assert not hasattr(user, "password")
    assert "password" not in json.loads(kv.data["currentUser"])

    current = await store.get_current_user()
    assert current is not None
    assert (current.id, current.email) == (registered.id, "ann@example.com")

    assert await store.logout() is True
    assert await store.get_current_user() is None
    assert "currentUser" not in kv.data


@pytest.mark.asyncio
async def test_create_task_requires_login(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    await store.register_user("ann@example.com", "secret")

    with pytest.raises(NoUserLoggedInError):
        await store.create_task("Buy milk", "2%", "2024-06-01T00:00:00.000Z", "medium")

    assert kv.data["tasks"] == "[]"


@pytest.mark.asyncio
async def test_explicit_session_for_unknown_user_is_rejected(store: RecordStore) -> None:
    await store.initialize()
    ghost = CurrentUser(id=999, email="ghost@example.com")

    with pytest.raises(NoUserLoggedInError):
        await store.create_task("Buy milk", "", "2024-06-01", "low", session=ghost)


@pytest.mark.asyncio
async def test_create_then_get_tasks_round_trip(store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)

    created = await store.create_task("Buy milk", "2%", "2024-06-01T00:00:00.000Z", "medium")
    views = await store.get_tasks(user.id)

    assert len(views) == 1
    task = views[0].task
    assert task.id == created.id
    assert task.user_id == user.id
    assert task.status == TaskStatus.PENDING
    assert task.title == "Buy milk"
    assert task.description == "2%"
    assert task.due_date == "2024-06-01T00:00:00.000Z"
    assert task.priority == TaskPriority.MEDIUM
    assert task.created_at == "2024-05-01T12:00:00.000Z"
    assert task.updated_at is None
    assert views[0].category is None
    assert views[0].to_dict()["category"] is None


@pytest.mark.asyncio
async def test_create_task_validates_title_and_priority(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    await _login(store)

    with pytest.raises(InvalidTaskError):
        await store.create_task("   ", "", "2024-06-01", "low")
    with pytest.raises(InvalidTaskError):
        await store.create_task("Buy milk", "", "2024-06-01", "urgent")

    assert kv.data["tasks"] == "[]"


@pytest.mark.asyncio
async def test_update_status_changes_only_status_and_updated_at(store: RecordStore) -> None:
    await store.initialize()
    await _login(store)
    created = await store.create_task("Buy milk", "2%", "2024-06-01T00:00:00.000Z", "medium")

    updated = await store.update_task(created.id, {"status": "completed"})

    before = created.to_dict()
    after = updated.to_dict()
    assert after.pop("status") == "completed"
    assert after.pop("updatedAt") is not None
    before.pop("status")
    assert after == before


@pytest.mark.asyncio
async def test_update_refreshes_updated_at_every_time(store: RecordStore) -> None:
    await store.initialize()
    await _login(store)
    created = await store.create_task("Buy milk", "", "2024-06-01", "low")

    first = await store.update_task(created.id, {"title": "Buy oat milk"})
    second = await store.update_task(created.id, {})

    assert first.updated_at is not None
    assert second.updated_at is not None
    assert second.updated_at > first.updated_at
    assert second.title == "Buy oat milk"


@pytest.mark.asyncio
async def test_update_missing_task_writes_nothing(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    await _login(store)
    await store.create_task("Buy milk", "", "2024-06-01", "low")
    snapshot = kv.data["tasks"]

    with pytest.raises(TaskNotFoundError):
        await store.update_task(404, {"status": "completed"})

    assert kv.data["tasks"] == snapshot


@pytest.mark.asyncio
async def test_update_rejects_identity_changes(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)
    created = await store.create_task("Buy milk", "", "2024-06-01", "low")
    snapshot = kv.data["tasks"]

    with pytest.raises(ImmutableFieldError):
        await store.update_task(created.id, {"userId": user.id + 1})
    with pytest.raises(ImmutableFieldError):
        await store.update_task(created.id, {"status": "completed", "id": 42})
    with pytest.raises(InvalidTaskError):
        await store.update_task(created.id, {"colour": "red"})
    with pytest.raises(InvalidTaskError):
        await store.update_task(created.id, {"status": "archived"})
    assert kv.data["tasks"] == snapshot

    # Passing the whole record back (as an edit form does) is fine when identity is unchanged.
    whole = {**created.to_dict(), "status": "completed", "category": None}
    updated = await store.update_task(created.id, whole)
    assert updated.status == TaskStatus.COMPLETED
    assert updated.id == created.id


@pytest.mark.asyncio
async def test_delete_is_idempotent(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)
    created = await store.create_task("Buy milk", "", "2024-06-01", "low")

    writes_before = len(kv.writes)
    assert await store.delete_task(404) is True
    assert len(kv.writes) == writes_before

    assert await store.delete_task(created.id) is True
    assert await store.get_tasks(user.id) == []
    assert await store.delete_task(created.id) is True


@pytest.mark.asyncio
async def test_get_tasks_filters_by_user_and_orders_by_due_date(store: RecordStore) -> None:
    await store.initialize()
    ann = await _login(store, "ann@example.com")

    due_dates = [
        "2024-06-03T00:00:00Z",
        "not a date",
        "2024-06-01T00:00:00Z",
        "",
        "2024-06-01T00:00:00.000Z",
        "2024-06-02T23:00:00-02:00",
    ]
    for i, due in enumerate(due_dates, start=1):
        await store.create_task(f"t{i}", "", due, "low")

    bob = await _login(store, "bob@example.com")
    await store.create_task("bob's", "", "2024-01-01", "high")

    ann_titles = [v.task.title for v in await store.get_tasks(ann.id)]
    # 06-02T23:00-02:00 is 06-03T01:00Z, after t1; unparsable dates last, in stored order.
    assert ann_titles == ["t3", "t5", "t1", "t6", "t2", "t4"]

    bob_views = await store.get_tasks(bob.id)
    assert [v.task.title for v in bob_views] == ["bob's"]
    assert all(v.task.user_id == bob.id for v in bob_views)


@pytest.mark.asyncio
async def test_get_tasks_resolves_categories(store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)
    work = await store.create_category("Work", "#ff0000")

    await store.create_task("with cat", "", "2024-06-01", "low", category_id=work.id)
    await store.create_task("dangling", "", "2024-06-02", "low", category_id=99)

    views = await store.get_tasks(user.id)
    assert views[0].category == work
    assert views[1].category is None
    assert views[1].task.category_id == 99


@pytest.mark.asyncio
async def test_categories_are_global_and_validated(store: RecordStore) -> None:
    assert await store.get_categories() == []

    a = await store.create_category("Home")
    b = await store.create_category("Work", "#0af")
    assert (a.id, a.color) == (1, "#000000")
    assert (b.id, b.color) == (2, "#0af")
    assert [c.name for c in await store.get_categories()] == ["Home", "Work"]

    with pytest.raises(ValueError):
        await store.create_category("", "#000000")
    with pytest.raises(ValueError):
        await store.create_category("Bad", "red")


@pytest.mark.asyncio
async def test_concurrent_creates_do_not_lose_updates(store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)

    created = await asyncio.gather(
        *(store.create_task(f"t{i}", "", "2024-06-01", "low") for i in range(10))
    )

    assert len({t.id for t in created}) == 10
    assert len(await store.get_tasks(user.id)) == 10


@pytest.mark.asyncio
async def test_adapter_failure_becomes_storage_unavailable(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    kv.fail = True
    with pytest.raises(StorageUnavailableError):
        await store.initialize()
    with pytest.raises(StorageUnavailableError):
        await store.get_current_user()


@pytest.mark.asyncio
async def test_slow_adapter_times_out(kv: InMemoryKeyValueStore) -> None:
    kv.delay = 0.5
    store = RecordStore(kv, timeout_seconds=0.05)

    with pytest.raises(StorageUnavailableError):
        await store.get_categories()


@pytest.mark.asyncio
async def test_corrupt_collection_is_reported(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    kv.data["tasks"] = '{"not": "a list"}'
    with pytest.raises(StorageUnavailableError):
        await store.get_tasks(1)

    kv.data["tasks"] = "[{"
    with pytest.raises(StorageUnavailableError):
        await store.get_tasks(1)


class _SlowOnceSqliteStore(SqliteKeyValueStore):
    """Real SQLite store whose next set() blocks its worker thread for a while."""

    def __init__(self, db_path: Path) -> None:
        super().__init__(db_path)
        self.slow_next_set = 0.0

    def _set_sync(self, key: str, value: str) -> None:
        if self.slow_next_set:
            delay, self.slow_next_set = self.slow_next_set, 0.0
            time.sleep(delay)
        super()._set_sync(key, value)


@pytest.mark.asyncio
async def test_write_that_lands_after_its_timeout_is_rolled_back(tmp_path: Path) -> None:
    kv = _SlowOnceSqliteStore(tmp_path / "store.sqlite3")
    store = RecordStore(kv, timeout_seconds=0.2)
    await store.initialize()
    user = await _login(store)
    a = await store.create_task("A", "", "2024-06-01", "low")

    kv.slow_next_set = 0.6
    update = asyncio.create_task(store.update_task(a.id, {"title": "late"}))
    await asyncio.sleep(0.3)

    # The update has already overrun; B queues behind it on the tasks lock.
    b = await store.create_task("B", "", "2024-06-02", "low")
    with pytest.raises(StorageUnavailableError):
        await update

    views = await store.get_tasks(user.id)
    assert [v.task.title for v in views] == ["A", "B"]
    assert [v.task.id for v in views] == [a.id, b.id]


@pytest.mark.asyncio
async def test_deleted_task_ids_are_not_reused(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)
    t1 = await store.create_task("t1", "", "2024-06-01", "low")
    t2 = await store.create_task("t2", "", "2024-06-02", "low")

    await store.delete_task(t2.id)
    t3 = await store.create_task("t3", "", "2024-06-03", "low")

    assert (t1.id, t2.id, t3.id) == (1, 2, 3)
    assert kv.data["taskSeq"] == "3"
    assert [v.task.id for v in await store.get_tasks(user.id)] == [1, 3]


@pytest.mark.asyncio
async def test_task_ids_continue_after_existing_data(kv: InMemoryKeyValueStore, store: RecordStore) -> None:
    await store.initialize()
    user = await _login(store)
    kv.data["tasks"] = json.dumps(
        [
            {
                "id": 7,
                "userId": user.id,
                "title": "old",
                "description": "",
                "dueDate": "",
                "status": "pending",
                "priority": "low",
                "createdAt": "2024-01-01T00:00:00.000Z",
            }
        ]
    )

    created = await store.create_task("new", "", "2024-06-01", "low")

    assert created.id == 8
