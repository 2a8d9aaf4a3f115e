"""Retry and backoff rules applied after each delivery attempt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from app.config import Settings, get_settings
from app.domain.entities import (
    DeliveryOutcome,
    DeliveryResult,
    QueueEntry,
    QueueStatus,
    QueueTransition,
)
from app.utils import ensure_utc


@dataclass(frozen=True)
class RetryPolicy:
    """Translate a :class:`DeliveryResult` into the next state of an entry.

    ``max_retries`` counts failed attempts: the entry is marked failed on the
    attempt that brings ``retry_count`` up to it. Permanent failures skip the
    remaining budget.
    """

    max_retries: int = 3
    backoff: timedelta = timedelta(minutes=5)
    max_backoff: timedelta = timedelta(minutes=60)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_retries=settings.max_retries,
            backoff=timedelta(minutes=settings.retry_backoff_minutes),
            max_backoff=timedelta(minutes=settings.retry_backoff_max_minutes),
        )

    def delay_for(self, retry_count: int) -> timedelta:
        """Backoff before the attempt following failure number ``retry_count``."""

        exponent = max(retry_count - 1, 0)
        return min(self.backoff * (2**exponent), self.max_backoff)

    def resolve(
        self, entry: QueueEntry, result: DeliveryResult, now: datetime
    ) -> QueueTransition:
        now = ensure_utc(now)
        if result.outcome is DeliveryOutcome.SUCCESS:
            return QueueTransition(
                status=QueueStatus.SENT,
                retry_count=entry.retry_count,
                error_message=None,
                sent_at=now,
            )

        retry_count = entry.retry_count + 1
        error = result.error or "Delivery failed"
        if result.outcome is DeliveryOutcome.PERMANENT or retry_count >= self.max_retries:
            return QueueTransition(
                status=QueueStatus.FAILED,
                retry_count=retry_count,
                error_message=error,
            )
        return QueueTransition(
            status=QueueStatus.PENDING,
            retry_count=retry_count,
            error_message=error,
            scheduled_send_time=now + self.delay_for(retry_count),
        )


__all__ = ["RetryPolicy"]
