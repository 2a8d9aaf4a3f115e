"""ORM models used by the application infrastructure."""

from .notification_queue import NotificationQueueModel

__all__ = ["NotificationQueueModel"]
