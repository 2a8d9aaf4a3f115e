"""Domain entities exposed by the application."""

from .delivery import DeliveryOutcome, DeliveryResult, QueueTransition
from .notification_queue import (
    CONSOLIDATED_ACTION,
    NotificationKind,
    QueueEntry,
    QueueKey,
    QueueStatus,
)
from .snapshot import (
    ActorSnapshot,
    ParticipantSnapshot,
    ParticipantsSnapshot,
    TaskSnapshot,
)

__all__ = [
    "ActorSnapshot",
    "CONSOLIDATED_ACTION",
    "DeliveryOutcome",
    "DeliveryResult",
    "NotificationKind",
    "ParticipantSnapshot",
    "ParticipantsSnapshot",
    "QueueEntry",
    "QueueKey",
    "QueueStatus",
    "QueueTransition",
    "TaskSnapshot",
]
