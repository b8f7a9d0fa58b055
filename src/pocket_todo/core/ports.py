# src/pocket_todo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The record store and the notification scheduler depend on Protocols instead of
concrete implementations. This keeps storage/notification backends swappable
and makes testing easier.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..notifications.models import NotificationContent, NotificationTrigger


class KeyValueStore(Protocol):
    """
    Durable string -> string storage.

    Values written with set() must survive process restarts.
    No atomicity is assumed across keys.
    """

    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def remove(self, key: str) -> None: ...


class NotificationPlatform(Protocol):
    """
    OS-side local notifications.

    cancel() of an id that no longer exists must not raise.
    """

    async def request_permission(self) -> bool: ...

    async def schedule(
            self,
            content: NotificationContent,
            trigger: NotificationTrigger,
    ) -> str: ...

    async def cancel(self, notification_id: str) -> None: ...


class NotificationSink(Protocol):
    """Front-end side: where an in-process platform hands a fired notification."""

    async def deliver(self, content: NotificationContent) -> None: ...
