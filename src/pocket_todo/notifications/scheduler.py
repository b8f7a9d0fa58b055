# src/pocket_todo/notifications/scheduler.py

from __future__ import annotations

"""
Task reminders.

Every scheduled task gets two notifications:
- "Task Created" a couple of seconds after scheduling,
- "Task Reminder" on the due date at `reminder_hour` local time.

The reminder keeps the minutes/seconds of the due date and only replaces the
hour (15:30 due -> 09:30 reminder).

Delivery itself belongs to the NotificationPlatform, not the scheduler.
"""

import logging
from collections.abc import Callable
from datetime import datetime, tzinfo

from ..core.ports import NotificationPlatform
from ..errors import NotificationError, PermissionDeniedError
from ..records.dates import parse_due_date
from .models import NotificationContent, NotificationTrigger

logger = logging.getLogger(__name__)

PERMISSION_WARNING = "You need to enable notifications to receive task reminders"


class NotificationScheduler:
    def __init__(
        self,
        platform: NotificationPlatform,
        *,
        reminder_hour: int = 9,
        created_delay_seconds: float = 2.0,
        tz: tzinfo | None = None,
        warn: Callable[[str], None] | None = None,
    ) -> None:
        if not 0 <= int(reminder_hour) <= 23:
            raise ValueError(f"reminder_hour out of range: {reminder_hour}")
        self._platform = platform
        self._reminder_hour = int(reminder_hour)
        self._created_delay = max(0.0, float(created_delay_seconds))
        self._tz = tz
        self._warn = warn
        self._permission: bool | None = None

    @property
    def permission_granted(self) -> bool | None:
        """None until request_permission() has been answered."""
        return self._permission

    async def request_permission(self) -> bool:
        """
        Ask the platform once per call; a denial is reported but not fatal.

        Callers keep working without reminders when this returns False.
        """
        try:
            granted = bool(await self._platform.request_permission())
        except Exception:
            logger.exception("Notification permission request failed")
            granted = False

        self._permission = granted
        if not granted:
            logger.warning("Notification permission denied; reminders are disabled")
            if self._warn is not None:
                try:
                    self._warn(PERMISSION_WARNING)
                except Exception:
                    logger.debug("Permission warning callback failed.", exc_info=True)
        return granted

    def reminder_trigger(self, due_date: str | datetime) -> datetime:
        """Due date moved to `reminder_hour` in the scheduler's zone (local zone when unset)."""
        dt = parse_due_date(due_date)
        if dt is None:
            raise ValueError(f"Unparsable due date: {due_date!r}")
        local = dt.astimezone(self._tz) if self._tz is not None else dt.astimezone()
        return local.replace(hour=self._reminder_hour)

    async def schedule_task_reminder(
        self,
        task_id: int,
        title: str,
        due_date: str | datetime,
    ) -> str:
        """
        Schedule the "created" notice and the due-date reminder.

        The notice goes out first, whatever the due date holds; an empty or
        unparsable due date then raises ValueError and no reminder is set.
        Returns the reminder's id (the one to pass to cancel_task_reminder).
        """
        if self._permission is False:
            raise PermissionDeniedError()

        data = {"taskId": task_id}
        await self._schedule(
            task_id,
            NotificationContent(
                title="Task Created",
                body=f'New task "{title}" has been created',
                data=data,
            ),
            NotificationTrigger.after(self._created_delay),
        )

        trigger_at = self.reminder_trigger(due_date)
        notification_id = await self._schedule(
            task_id,
            NotificationContent(
                title="Task Reminder",
                body=f'Task "{title}" is due today!',
                data=data,
            ),
            NotificationTrigger.at_time(trigger_at),
        )

        logger.info(
            "Reminder scheduled task_id=%s notification_id=%s at=%s",
            task_id,
            notification_id,
            trigger_at.isoformat(),
        )
        return notification_id

    async def _schedule(
        self, task_id: int, content: NotificationContent, trigger: NotificationTrigger
    ) -> str:
        try:
            return await self._platform.schedule(content, trigger)
        except PermissionDeniedError:
            self._permission = False
            raise
        except Exception as e:
            raise NotificationError(f"Failed to schedule reminder for task {task_id}: {e}") from e

    async def cancel_task_reminder(self, notification_id: str) -> None:
        """Best-effort: unknown ids and platform errors are only logged."""
        try:
            await self._platform.cancel(notification_id)
            logger.debug("Reminder cancelled notification_id=%s", notification_id)
        except Exception:
            logger.warning("Failed to cancel reminder notification_id=%s", notification_id, exc_info=True)
