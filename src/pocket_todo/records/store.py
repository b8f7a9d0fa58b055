# src/pocket_todo/records/store.py

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any, TypeVar

from ..core.ports import KeyValueStore
from ..errors import (
    DuplicateEmailError,
    ImmutableFieldError,
    InvalidTaskError,
    NoUserLoggedInError,
    StorageUnavailableError,
    TaskNotFoundError,
)
from .dates import to_iso_z, utc_now
from .models import Category, CurrentUser, Task, TaskPriority, TaskStatus, TaskView, User
from .views import sort_tasks

logger = logging.getLogger(__name__)

KEY_USERS = "users"
KEY_TASKS = "tasks"
KEY_CATEGORIES = "categories"
KEY_CURRENT_USER = "currentUser"
KEY_TASK_SEQ = "taskSeq"

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# update key (python or wire name) -> Task attribute
_UPDATABLE = {
    "title": "title",
    "description": "description",
    "due_date": "due_date",
    "dueDate": "due_date",
    "status": "status",
    "priority": "priority",
    "category_id": "category_id",
    "categoryId": "category_id",
}
_IMMUTABLE = {
    "id": "id",
    "user_id": "user_id",
    "userId": "user_id",
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
}
# Join field added by get_tasks(); accepted and dropped so a whole view can be passed back.
_DERIVED = {"category"}

R = TypeVar("R", User, Task, Category)


def _next_id(records: list[Any]) -> int:
    return max((int(r.id) for r in records), default=0) + 1


def _coerce_priority(raw: Any) -> TaskPriority:
    try:
        return TaskPriority(str(raw).strip().lower())
    except ValueError:
        raise InvalidTaskError(f"Invalid priority: {raw!r}") from None


def _coerce_status(raw: Any) -> TaskStatus:
    try:
        return TaskStatus(str(raw).strip().lower())
    except ValueError:
        raise InvalidTaskError(f"Invalid status: {raw!r}") from None


def _coerce_due_date(raw: Any) -> str:
    if isinstance(raw, datetime):
        return to_iso_z(raw)
    if raw is None:
        return ""
    return str(raw)


def _coerce_title(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidTaskError("title is required")
    return raw


def _coerce_category_id(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidTaskError(f"Invalid category id: {raw!r}") from None


class RecordStore:
    """
    Users / tasks / categories / current-user over a KeyValueStore.

    Each collection is one JSON array under a fixed key; the current user is a
    single JSON object. Every mutation is read-whole-collection -> change ->
    write-whole-collection, serialized per collection by an asyncio.Lock, so
    overlapping writers in one process cannot lose each other's updates.
    Adapter calls are bounded by a timeout; any adapter failure surfaces as
    StorageUnavailableError and leaves the stored value as it was (a write
    that lands after its timeout is rolled back under the same lock).
    Task ids come from a persisted counter and are never reused.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._kv = kv
        self._timeout = max(0.01, float(timeout_seconds))
        self._clock = clock or utc_now
        self._locks = {
            key: asyncio.Lock() for key in (KEY_USERS, KEY_TASKS, KEY_CATEGORIES, KEY_CURRENT_USER)
        }

    # ---- low-level helpers ----

    async def _get(self, key: str) -> str | None:
        try:
            return await asyncio.wait_for(self._kv.get(key), self._timeout)
        except TimeoutError as e:
            raise StorageUnavailableError(f"Timed out reading {key!r}") from e
        except Exception as e:
            raise StorageUnavailableError(f"Failed to read {key!r}: {e}") from e

    async def _set(self, key: str, value: str, *, prior: str | None) -> None:
        await self._write(key, value, prior=prior)

    async def _remove(self, key: str, *, prior: str | None) -> None:
        await self._write(key, None, prior=prior)

    async def _write(self, key: str, value: str | None, *, prior: str | None) -> None:
        """
        Set `key` (remove it when value is None), bounded by the store timeout.

        An adapter call cannot be taken back once started, so an overrun is
        waited out while the caller still holds the collection lock. If the
        late call succeeded, `prior` is put back before StorageUnavailableError
        is raised: a failed write never shows up in storage.
        """
        action = "write" if value is not None else "remove"
        op = self._kv.set(key, value) if value is not None else self._kv.remove(key)
        call = asyncio.ensure_future(op)
        try:
            await asyncio.wait_for(asyncio.shield(call), self._timeout)
            return
        except TimeoutError:
            logger.warning("Storage %s of %r exceeded %.2fs; waiting for it to settle", action, key, self._timeout)
        except Exception as e:
            raise StorageUnavailableError(f"Failed to {action} {key!r}: {e}") from e

        try:
            await call
        except Exception as e:
            raise StorageUnavailableError(f"Timed out and failed to {action} {key!r}: {e}") from e

        try:
            if prior is None:
                await self._kv.remove(key)
            else:
                await self._kv.set(key, prior)
        except Exception as e:
            raise StorageUnavailableError(f"Timed out writing {key!r} and could not roll back: {e}") from e
        logger.warning("Rolled back late %s of %r", action, key)
        raise StorageUnavailableError(f"Timed out writing {key!r}")

    async def _load(self, key: str, factory: Callable[[dict[str, Any]], R]) -> list[R]:
        return self._parse(key, await self._get(key), factory)

    async def _load_with_raw(self, key: str, factory: Callable[[dict[str, Any]], R]) -> tuple[str | None, list[R]]:
        raw = await self._get(key)
        return raw, self._parse(key, raw, factory)

    @staticmethod
    def _parse(key: str, raw: str | None, factory: Callable[[dict[str, Any]], R]) -> list[R]:
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageUnavailableError(f"Collection {key!r} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise StorageUnavailableError(f"Collection {key!r} is not a JSON array")
        try:
            return [factory(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageUnavailableError(f"Collection {key!r} holds a malformed record: {e}") from e

    async def _save(self, key: str, records: list[Any], *, prior: str | None) -> None:
        await self._set(key, json.dumps([r.to_dict() for r in records], ensure_ascii=False), prior=prior)

    async def _next_task_id(self, tasks: list[Task]) -> int:
        """
        Reserve a task id. Caller holds the tasks lock.

        The high-water mark is persisted, so ids of deleted tasks are never
        handed out again. A reserved id whose task write then fails is skipped.
        """
        raw = await self._get(KEY_TASK_SEQ)
        try:
            last = int(raw) if raw else 0
        except ValueError as e:
            raise StorageUnavailableError(f"Task id sequence is malformed: {raw!r}") from e

        next_id = max([last, *(t.id for t in tasks)]) + 1
        await self._set(KEY_TASK_SEQ, str(next_id), prior=raw)
        return next_id

    def _now_iso(self) -> str:
        return to_iso_z(self._clock())

    # ---- lifecycle ----

    async def initialize(self) -> None:
        """Create empty users/tasks collections when missing. Never overwrites existing data."""
        for key in (KEY_USERS, KEY_TASKS):
            async with self._locks[key]:
                raw = await self._get(key)
                if not raw:
                    await self._set(key, "[]", prior=raw)
                    logger.info("Initialized empty collection %s", key)

    # ---- users / session ----

    async def register_user(self, email: str, password: str) -> CurrentUser:
        if not email or not password:
            raise ValueError("email and password are required")

        async with self._locks[KEY_USERS]:
            raw, users = await self._load_with_raw(KEY_USERS, User.from_dict)
            if any(u.email == email for u in users):
                raise DuplicateEmailError(email)

            user = User(id=_next_id(users), email=email, password=password)
            users.append(user)
            await self._save(KEY_USERS, users, prior=raw)

        logger.info("User registered id=%s", user.id)
        return user.public()

    async def validate_user(self, email: str, password: str) -> CurrentUser | None:
        """
        Check credentials; on success also store the user as the current user.

        Checking and logging in are the same operation: a successful call
        replaces whatever session was stored before.
        """
        users = await self._load(KEY_USERS, User.from_dict)
        match = next((u for u in users if u.email == email and u.password == password), None)
        if match is None:
            logger.info("Login rejected (no matching credentials)")
            return None

        current = match.public()
        async with self._locks[KEY_CURRENT_USER]:
            prior = await self._get(KEY_CURRENT_USER)
            await self._set(KEY_CURRENT_USER, json.dumps(current.to_dict(), ensure_ascii=False), prior=prior)
        logger.info("User logged in id=%s", current.id)
        return current

    async def get_current_user(self) -> CurrentUser | None:
        raw = await self._get(KEY_CURRENT_USER)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("current user is not a JSON object")
            return CurrentUser.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StorageUnavailableError(f"Current user slot is malformed: {e}") from e

    async def logout(self) -> bool:
        async with self._locks[KEY_CURRENT_USER]:
            prior = await self._get(KEY_CURRENT_USER)
            if prior is not None:
                await self._remove(KEY_CURRENT_USER, prior=prior)
        logger.info("Logged out")
        return True

    async def _require_session(self, session: CurrentUser | None) -> CurrentUser:
        if session is None:
            session = await self.get_current_user()
        if session is None:
            raise NoUserLoggedInError()

        users = await self._load(KEY_USERS, User.from_dict)
        if not any(u.id == session.id for u in users):
            raise NoUserLoggedInError(f"Session user {session.id} does not exist")
        return session

    # ---- tasks ----

    async def create_task(
        self,
        title: str,
        description: str,
        due_date: str | datetime,
        priority: str | TaskPriority,
        *,
        category_id: int | None = None,
        session: CurrentUser | None = None,
    ) -> Task:
        """
        Create a pending task owned by the session user.

        session defaults to the persisted current user; without one the call
        fails with NoUserLoggedInError and nothing is written.
        """
        title = _coerce_title(title)
        prio = _coerce_priority(priority)
        owner = await self._require_session(session)

        async with self._locks[KEY_TASKS]:
            raw, tasks = await self._load_with_raw(KEY_TASKS, Task.from_dict)
            task = Task(
                id=await self._next_task_id(tasks),
                user_id=owner.id,
                title=title,
                description=description or "",
                due_date=_coerce_due_date(due_date),
                status=TaskStatus.PENDING,
                priority=prio,
                created_at=self._now_iso(),
                category_id=_coerce_category_id(category_id),
            )
            tasks.append(task)
            await self._save(KEY_TASKS, tasks, prior=raw)

        logger.info("Task created id=%s user_id=%s due=%s", task.id, task.user_id, task.due_date)
        return task

    async def get_task(self, task_id: int) -> Task | None:
        tasks = await self._load(KEY_TASKS, Task.from_dict)
        return next((t for t in tasks if t.id == task_id), None)

    async def get_tasks(self, user_id: int) -> list[TaskView]:
        """Tasks of one user joined with their category, ordered by due date."""
        tasks = await self._load(KEY_TASKS, Task.from_dict)
        categories = {c.id: c for c in await self._load(KEY_CATEGORIES, Category.from_dict)}

        views = [
            TaskView(
                task=t,
                category=categories.get(t.category_id) if t.category_id is not None else None,
            )
            for t in tasks
            if t.user_id == user_id
        ]
        return sort_tasks(views, by="due_date")

    def _validate_updates(self, current: Task, updates: Mapping[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key, value in updates.items():
            if key in _DERIVED:
                continue

            if key in _IMMUTABLE:
                field = _IMMUTABLE[key]
                if field == "updated_at":
                    continue
                if value != getattr(current, field):
                    raise ImmutableFieldError(field)
                continue

            field = _UPDATABLE.get(key)
            if field is None:
                raise InvalidTaskError(f"Unknown task field: {key}")

            if field == "title":
                changes[field] = _coerce_title(value)
            elif field == "description":
                changes[field] = "" if value is None else str(value)
            elif field == "due_date":
                changes[field] = _coerce_due_date(value)
            elif field == "status":
                changes[field] = _coerce_status(value)
            elif field == "priority":
                changes[field] = _coerce_priority(value)
            else:
                changes[field] = _coerce_category_id(value)
        return changes

    async def update_task(self, task_id: int, updates: Mapping[str, Any]) -> Task:
        """
        Merge updates into an existing task and refresh updatedAt.

        Fields not named keep their values. Identity fields cannot change.
        A failed update writes nothing.
        """
        async with self._locks[KEY_TASKS]:
            raw, tasks = await self._load_with_raw(KEY_TASKS, Task.from_dict)
            idx = next((i for i, t in enumerate(tasks) if t.id == task_id), None)
            if idx is None:
                raise TaskNotFoundError(task_id)

            changes = self._validate_updates(tasks[idx], updates)
            updated = replace(tasks[idx], **changes, updated_at=self._now_iso())
            tasks[idx] = updated
            await self._save(KEY_TASKS, tasks, prior=raw)

        logger.info("Task updated id=%s fields=%s", task_id, sorted(changes))
        return updated

    async def delete_task(self, task_id: int) -> bool:
        """Remove a task. Deleting an unknown id succeeds without writing."""
        async with self._locks[KEY_TASKS]:
            raw, tasks = await self._load_with_raw(KEY_TASKS, Task.from_dict)
            kept = [t for t in tasks if t.id != task_id]
            if len(kept) == len(tasks):
                logger.debug("delete_task: id=%s not present", task_id)
                return True
            await self._save(KEY_TASKS, kept, prior=raw)

        logger.info("Task deleted id=%s", task_id)
        return True

    # ---- categories ----

    async def get_categories(self) -> list[Category]:
        return await self._load(KEY_CATEGORIES, Category.from_dict)

    async def create_category(self, name: str, color: str = "#000000") -> Category:
        if not name or not name.strip():
            raise ValueError("category name is required")
        if not _COLOR_RE.match(color or ""):
            raise ValueError(f"Invalid color: {color!r}")

        async with self._locks[KEY_CATEGORIES]:
            raw, categories = await self._load_with_raw(KEY_CATEGORIES, Category.from_dict)
            category = Category(id=_next_id(categories), name=name.strip(), color=color)
            categories.append(category)
            await self._save(KEY_CATEGORIES, categories, prior=raw)

        logger.info("Category created id=%s name=%s", category.id, category.name)
        return category
