# src/pocket_todo/records/views.py

"""Read-side helpers over TaskView lists: filtering, ordering, counters, date labels."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from .dates import parse_due_date
from .models import TaskPriority, TaskStatus, TaskView

StatusFilter = Literal["all", "pending", "completed"]
SortKey = Literal["due_date", "priority"]

_PRIORITY_RANK = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    pending: int
    completed: int


def due_sort_key(view: TaskView) -> tuple[int, float]:
    """
    Total order on due dates.

    Valid dates come first, ascending by instant. Empty or unparsable dates all
    share one key after them, so a stable sort keeps their stored order.
    """
    dt = parse_due_date(view.task.due_date)
    if dt is None:
        return (1, 0.0)
    return (0, dt.timestamp())


def sort_tasks(views: Iterable[TaskView], by: SortKey = "due_date") -> list[TaskView]:
    if by == "priority":
        return sorted(views, key=lambda v: (_PRIORITY_RANK[v.task.priority], due_sort_key(v)))
    if by == "due_date":
        return sorted(views, key=due_sort_key)
    raise ValueError(f"Unknown sort key: {by!r}")


def filter_tasks(
    views: Iterable[TaskView],
    status: StatusFilter = "all",
    query: str = "",
) -> list[TaskView]:
    """Status filter ('pending' means anything not completed) plus case-insensitive title search."""
    if status not in ("all", "pending", "completed"):
        raise ValueError(f"Unknown status filter: {status!r}")

    needle = (query or "").strip().lower()
    out: list[TaskView] = []
    for v in views:
        if needle and needle not in v.task.title.lower():
            continue
        done = v.task.status == TaskStatus.COMPLETED
        if status == "pending" and done:
            continue
        if status == "completed" and not done:
            continue
        out.append(v)
    return out


def task_stats(views: Iterable[TaskView]) -> TaskStats:
    items = list(views)
    completed = sum(1 for v in items if v.task.status == TaskStatus.COMPLETED)
    pending = sum(1 for v in items if v.task.status == TaskStatus.PENDING)
    return TaskStats(total=len(items), pending=pending, completed=completed)


def format_due_date(value: object) -> str:
    """Short label like 'Jun 1, 2024'."""
    if value is None or value == "":
        return "No date"
    dt = parse_due_date(value)
    if dt is None:
        return "Invalid date"
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"
