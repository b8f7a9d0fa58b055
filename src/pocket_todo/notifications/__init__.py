"""
Notification subsystem.

Components:
- models.py: NotificationContent, NotificationTrigger
- scheduler.py: task reminder scheduling on top of a NotificationPlatform
- local_platform.py: in-process asyncio platform for the console
"""
