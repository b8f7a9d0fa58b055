# src/pocket_todo/records/api.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..core.state import AppState
from ..errors import NoUserLoggedInError, TaskNotFoundError
from .models import CurrentUser, Task, TaskStatus

logger = logging.getLogger(__name__)


async def login(state: AppState, email: str, password: str) -> CurrentUser | None:
    user = await state.records.validate_user(email, password)
    if user is not None:
        state.session = user
    return user


async def logout(state: AppState) -> None:
    await state.records.logout()
    state.session = None


async def restore_session(state: AppState) -> CurrentUser | None:
    """Pick up the persisted current user (e.g. after a restart)."""
    state.session = await state.records.get_current_user()
    return state.session


def require_session(state: AppState) -> CurrentUser:
    if state.session is None:
        raise NoUserLoggedInError()
    return state.session


async def owned_task(state: AppState, task_id: int) -> Task:
    """The session user's task `task_id`; someone else's task counts as missing."""
    user = require_session(state)
    task = await state.records.get_task(task_id)
    if task is None or task.user_id != user.id:
        raise TaskNotFoundError(task_id)
    return task


async def _remind(state: AppState, task: Task) -> None:
    old = state.reminders.pop(task.id, None)
    if old is not None:
        await state.notifier.cancel_task_reminder(old)

    try:
        notification_id = await state.notifier.schedule_task_reminder(task.id, task.title, task.due_date)
    except ValueError:
        logger.info("No reminder for task_id=%s (due date %r)", task.id, task.due_date)
        return
    except Exception:
        # The task is already saved; a missing reminder must not undo that.
        logger.exception("Reminder scheduling failed task_id=%s", task.id)
        return
    state.reminders[task.id] = notification_id


def remind_in_background(state: AppState, task: Task) -> asyncio.Task[None]:
    """
    Schedule the task's reminder without making the caller wait for it.

    Replaces a reminder previously scheduled for the same task. Every failure
    is logged and swallowed.
    """
    job = asyncio.create_task(_remind(state, task), name=f"remind-task-{task.id}")
    state.background.add(job)
    job.add_done_callback(state.background.discard)
    return job


async def save_task(
    state: AppState,
    *,
    title: str,
    description: str,
    due_date: str | datetime,
    priority: str,
    category_id: int | None = None,
    task_id: int | None = None,
) -> Task:
    """
    Create a task (or update `task_id`), then start its reminder in the background.

    Returns as soon as the task is persisted.
    """
    if task_id is None:
        task = await state.records.create_task(
            title,
            description,
            due_date,
            priority,
            category_id=category_id,
            session=require_session(state),
        )
    else:
        await owned_task(state, task_id)
        task = await state.records.update_task(
            task_id,
            {
                "title": title,
                "description": description,
                "due_date": due_date,
                "priority": priority,
                "category_id": category_id,
            },
        )

    remind_in_background(state, task)
    return task


async def edit_task(state: AppState, task_id: int, updates: Mapping[str, Any]) -> Task:
    """Apply a partial update to one of the session user's tasks and refresh its reminder."""
    await owned_task(state, task_id)
    task = await state.records.update_task(task_id, updates)
    remind_in_background(state, task)
    return task


async def toggle_task(state: AppState, task_id: int) -> Task:
    task = await owned_task(state, task_id)
    new_status = TaskStatus.PENDING if task.status == TaskStatus.COMPLETED else TaskStatus.COMPLETED
    return await state.records.update_task(task_id, {"status": new_status})


async def remove_task(state: AppState, task_id: int) -> bool:
    """Delete one of the session user's tasks. An id that no longer exists is a no-op."""
    user = require_session(state)
    task = await state.records.get_task(task_id)
    if task is not None and task.user_id != user.id:
        raise TaskNotFoundError(task_id)
    ok = await state.records.delete_task(task_id)
    notification_id = state.reminders.pop(task_id, None)
    if notification_id is not None:
        await state.notifier.cancel_task_reminder(notification_id)
    return ok
