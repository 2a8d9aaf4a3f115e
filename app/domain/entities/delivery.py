"""Domain values describing the outcome of one delivery attempt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .notification_queue import QueueStatus


class DeliveryOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class DeliveryResult:
    """Classified result returned by a sender."""

    outcome: DeliveryOutcome
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS

    @classmethod
    def success(cls) -> "DeliveryResult":
        return cls(DeliveryOutcome.SUCCESS)

    @classmethod
    def transient(cls, error: str) -> "DeliveryResult":
        return cls(DeliveryOutcome.TRANSIENT, error)

    @classmethod
    def permanent(cls, error: str) -> "DeliveryResult":
        return cls(DeliveryOutcome.PERMANENT, error)


@dataclass(frozen=True)
class QueueTransition:
    """State change to apply to a queue entry after a delivery attempt."""

    status: QueueStatus
    retry_count: int
    error_message: str | None = None
    scheduled_send_time: datetime | None = None
    sent_at: datetime | None = None


__all__ = ["DeliveryOutcome", "DeliveryResult", "QueueTransition"]
