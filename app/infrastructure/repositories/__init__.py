"""Repository implementations for infrastructure layer."""

from .notification_queue_repository import (
    EntryChanges,
    NotificationQueueRepository,
    QueueFilter,
    is_pending_key_violation,
)

__all__ = [
    "EntryChanges",
    "NotificationQueueRepository",
    "QueueFilter",
    "is_pending_key_violation",
]
