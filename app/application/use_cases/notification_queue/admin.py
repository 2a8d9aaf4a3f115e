"""Operator queries and actions on the notification queue."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.domain.entities import DeliveryResult, QueueEntry, QueueStatus, QueueTransition
from app.infrastructure.notifications.sender import NotificationSender
from app.infrastructure.repositories import NotificationQueueRepository, QueueFilter
from app.utils import Clock, now_utc

logger = logging.getLogger(__name__)

_FORCE_SENDABLE = (QueueStatus.PENDING, QueueStatus.FAILED)


@dataclass
class SendNowReport:
    sent_count: int = 0
    skipped_already_sent: int = 0
    errors: list[str] = field(default_factory=list)


def list_queue(session: Session, filters: QueueFilter | None = None) -> list[QueueEntry]:
    """Return queue entries matching ``filters``, most recently updated first."""

    return NotificationQueueRepository(session).list(filters)


def get_queue_entry(session: Session, entry_id: str) -> QueueEntry:
    entry = NotificationQueueRepository(session).get(entry_id)
    if entry is None:
        raise ValueError("Notification not found")
    return entry


def queue_stats(session: Session) -> dict[QueueStatus, int]:
    return NotificationQueueRepository(session).count_by_status()


def send_now(
    session: Session,
    entry_ids: Iterable[str],
    *,
    sender: NotificationSender,
    clock: Clock = now_utc,
) -> SendNowReport:
    """Deliver the selected entries immediately, ignoring their schedule.

    Entries that were already sent are skipped rather than reported as
    errors, so operators can submit mixed selections. Failed entries get one
    more attempt; a failure is recorded on the entry without changing its
    status or schedule.
    """

    ids = _unique_ids(entry_ids)
    if not ids:
        raise ValueError("Notification ids are required")

    repository = NotificationQueueRepository(session)
    report = SendNowReport()
    for entry_id in ids:
        entry = repository.get(entry_id)
        if entry is None:
            report.errors.append(f"Notification {entry_id} not found")
            continue
        if entry.status is QueueStatus.SENT:
            report.skipped_already_sent += 1
            continue

        started = clock()
        try:
            result = sender.send(entry)
        except Exception as exc:
            logger.exception("Sender raised for queue entry %s", entry_id)
            result = DeliveryResult.transient(str(exc) or exc.__class__.__name__)

        now = clock()
        if result.succeeded:
            transition = QueueTransition(
                status=QueueStatus.SENT,
                retry_count=entry.retry_count,
                error_message=None,
                sent_at=now,
            )
        else:
            transition = QueueTransition(
                status=entry.status,
                retry_count=entry.retry_count + 1,
                error_message=result.error,
            )

        applied = repository.apply_transition(
            entry, transition, now=now, from_statuses=_FORCE_SENDABLE
        )
        if not result.succeeded:
            report.errors.append(f"Failed to send {entry_id}: {result.error}")
        elif applied or repository.rebase_after_delivery(
            entry, attempt_started=started, now=now
        ):
            report.sent_count += 1
        else:
            report.errors.append(f"Notification {entry_id} changed while it was being sent")

    logger.info(
        "Force send finished: %s sent, %s already sent, %s error(s)",
        report.sent_count,
        report.skipped_already_sent,
        len(report.errors),
    )
    return report


def delete_entries(session: Session, entry_ids: Iterable[str]) -> int:
    ids = _unique_ids(entry_ids)
    if not ids:
        raise ValueError("Notification ids are required")
    deleted = NotificationQueueRepository(session).delete_many(ids)
    logger.info("Deleted %s notification queue entr(y/ies)", deleted)
    return deleted


def delete_all_sent(session: Session) -> int:
    deleted = NotificationQueueRepository(session).delete_by_status(QueueStatus.SENT)
    logger.info("Deleted %s sent notification(s)", deleted)
    return deleted


def _unique_ids(entry_ids: Iterable[str]) -> list[str]:
    unique: list[str] = []
    seen: set[str] = set()
    for entry_id in entry_ids:
        if not entry_id or entry_id in seen:
            continue
        seen.add(entry_id)
        unique.append(entry_id)
    return unique


__all__ = [
    "SendNowReport",
    "delete_all_sent",
    "delete_entries",
    "get_queue_entry",
    "list_queue",
    "queue_stats",
    "send_now",
]
