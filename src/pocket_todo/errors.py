# src/pocket_todo/errors.py

"""
Error kinds raised by the record store and the notification scheduler.

Store errors propagate to the caller as-is; the front-end decides how to show them.
"""

from __future__ import annotations


class PocketTodoError(Exception):
    """Base class for every error raised by pocket_todo."""


class DuplicateEmailError(PocketTodoError):
    def __init__(self, email: str) -> None:
        super().__init__(f"Email already registered: {email}")
        self.email = email


class NoUserLoggedInError(PocketTodoError):
    def __init__(self, message: str = "No user logged in") -> None:
        super().__init__(message)


class TaskNotFoundError(PocketTodoError, LookupError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StorageUnavailableError(PocketTodoError):
    """Wraps any failure of the key-value adapter (I/O error, timeout, corrupt value)."""


class InvalidTaskError(PocketTodoError, ValueError):
    """A task (or task update) failed validation."""


class ImmutableFieldError(InvalidTaskError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Field is immutable: {field}")
        self.field = field


class NotificationError(PocketTodoError):
    """The notification platform failed to schedule something."""


class PermissionDeniedError(NotificationError):
    def __init__(self, message: str = "Notification permission denied") -> None:
        super().__init__(message)
