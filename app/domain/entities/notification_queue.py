"""Domain entity representing one queued task notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .snapshot import ActorSnapshot, ParticipantsSnapshot, TaskSnapshot

CONSOLIDATED_ACTION = "consolidated_update"


class QueueStatus(str, Enum):
    """Lifecycle state of a queue entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationKind(str, Enum):
    """Role through which the recipient is related to the task."""

    ASSIGNEE = "assignee"
    WATCHER = "watcher"
    COLLABORATOR = "collaborator"
    REQUESTER = "requester"


@dataclass(frozen=True)
class QueueKey:
    """Identity used to accumulate changes into a single pending entry."""

    user_id: str
    task_id: str
    notification_type: NotificationKind


@dataclass
class QueueEntry:
    """Unit of pending, sent or failed notification work."""

    id: str | None
    user_id: str
    task_id: str
    notification_type: NotificationKind
    action: str
    task_data: TaskSnapshot
    participants_data: ParticipantsSnapshot = field(default_factory=ParticipantsSnapshot)
    actor_data: ActorSnapshot | None = None
    details: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    status: QueueStatus = QueueStatus.PENDING
    accumulating: bool = True
    scheduled_send_time: datetime | None = None
    first_change_time: datetime | None = None
    last_change_time: datetime | None = None
    change_count: int = 1
    retry_count: int = 0
    error_message: str | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_action(self) -> str:
        """Action label for delivery; merged entries read as a consolidated update."""

        return CONSOLIDATED_ACTION if self.change_count > 1 else self.action


__all__ = [
    "CONSOLIDATED_ACTION",
    "NotificationKind",
    "QueueEntry",
    "QueueKey",
    "QueueStatus",
]
