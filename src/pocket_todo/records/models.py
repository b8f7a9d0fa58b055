# src/pocket_todo/records/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _opt_int(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    return int(raw)


@dataclass(frozen=True, slots=True)
class CurrentUser:
    """A user without the password: what login returns and what the session slot holds."""

    id: int
    email: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CurrentUser:
        return cls(id=int(data["id"]), email=str(data["email"]))


@dataclass(frozen=True, slots=True)
class User:
    id: int
    email: str
    password: str

    def public(self) -> CurrentUser:
        return CurrentUser(id=self.id, email=self.email)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "password": self.password}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            id=int(data["id"]),
            email=str(data["email"]),
            password=str(data.get("password", "")),
        )


@dataclass(frozen=True, slots=True)
class Category:
    id: int
    name: str
    color: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Category:
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            color=str(data.get("color", "#000000")),
        )


@dataclass(frozen=True, slots=True)
class Task:
    """
    A stored task.

    Serialized with the camelCase names used on disk (userId, dueDate, ...).
    due_date is kept as the string the caller supplied; it is parsed only for
    ordering and reminders.
    """

    id: int
    user_id: int
    title: str
    description: str
    due_date: str
    status: TaskStatus
    priority: TaskPriority
    created_at: str
    category_id: int | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date,
            "status": self.status.value,
            "priority": self.priority.value,
            "createdAt": self.created_at,
        }
        if self.category_id is not None:
            out["categoryId"] = self.category_id
        if self.updated_at is not None:
            out["updatedAt"] = self.updated_at
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=int(data["id"]),
            user_id=int(data["userId"]),
            title=str(data.get("title", "")),
            description=str(data.get("description") or ""),
            due_date=str(data.get("dueDate") or ""),
            status=TaskStatus(data.get("status") or TaskStatus.PENDING),
            priority=TaskPriority(data.get("priority") or TaskPriority.MEDIUM),
            created_at=str(data.get("createdAt") or ""),
            category_id=_opt_int(data.get("categoryId")),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True, slots=True)
class TaskView:
    """A task joined with its category (None when unset or dangling)."""

    task: Task
    category: Category | None

    def to_dict(self) -> dict[str, Any]:
        out = self.task.to_dict()
        out["category"] = None if self.category is None else self.category.to_dict()
        return out
