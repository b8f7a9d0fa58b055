# src/pocket_todo/notifications/local_platform.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from ..core.ports import NotificationSink
from .models import NotificationContent, NotificationTrigger

logger = logging.getLogger(__name__)


class AsyncioNotificationPlatform:
    """
    In-process NotificationPlatform.

    Each scheduled notification is an asyncio task that sleeps until its
    trigger and then hands the content to the sink. Triggers already in the
    past fire immediately. Must be used from inside a running event loop.

    To stop everything pending, call close().
    """

    def __init__(
        self,
        sink: NotificationSink,
        *,
        enabled: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sink = sink
        self._enabled = enabled
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pending: dict[str, asyncio.Task[None]] = {}

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    async def request_permission(self) -> bool:
        return self._enabled

    async def schedule(self, content: NotificationContent, trigger: NotificationTrigger) -> str:
        notification_id = uuid.uuid4().hex
        delay = trigger.delay_from(self._clock())
        task = asyncio.create_task(
            self._fire(notification_id, content, delay),
            name=f"notification-{notification_id}",
        )
        self._pending[notification_id] = task
        logger.debug("Notification %s scheduled in %.1fs: %s", notification_id, delay, content.title)
        return notification_id

    async def _fire(self, notification_id: str, content: NotificationContent, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self._sink.deliver(content)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Notification delivery failed id=%s", notification_id)
        finally:
            self._pending.pop(notification_id, None)

    async def cancel(self, notification_id: str) -> None:
        task = self._pending.pop(notification_id, None)
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def close(self) -> None:
        for notification_id in list(self._pending):
            await self.cancel(notification_id)
