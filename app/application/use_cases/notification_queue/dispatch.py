"""Dispatcher sweep: deliver due queue entries and record the outcome."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.entities import DeliveryResult, QueueEntry, QueueStatus
from app.infrastructure.notifications.sender import NotificationSender
from app.infrastructure.repositories import NotificationQueueRepository
from app.utils import Clock, now_utc

from .retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counters describing one sweep.

    A delivery whose entry was merged into meanwhile counts as a conflict and,
    when the email went out, as sent too.
    """

    examined: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: int = 0


def select_due(entries: Iterable[QueueEntry], now: datetime) -> list[QueueEntry]:
    """Return the entries of ``entries`` that may be dispatched at ``now``."""

    return [
        entry
        for entry in entries
        if entry.status is QueueStatus.PENDING
        and entry.scheduled_send_time is not None
        and entry.scheduled_send_time <= now
    ]


def run_dispatch_sweep(
    session: Session,
    *,
    sender: NotificationSender,
    policy: RetryPolicy | None = None,
    clock: Clock = now_utc,
    batch_size: int | None = None,
) -> SweepReport:
    """Send every pending entry whose scheduled time has arrived.

    A failure while handling one entry is logged and counted; it never stops
    the sweep for the remaining entries.
    """

    policy = policy or RetryPolicy.from_settings()
    if batch_size is None:
        batch_size = get_settings().dispatch_batch_size
    repository = NotificationQueueRepository(session)
    report = SweepReport()

    now = clock()
    due = select_due(repository.list_due(now, limit=batch_size), now)
    if not due:
        return report

    logger.info("Processing %s ready notification(s)", len(due))
    _deliver_all(repository, due, sender=sender, policy=policy, clock=clock, report=report)
    _log_report("Sweep", report)
    return report


def flush_pending(
    session: Session,
    *,
    sender: NotificationSender,
    policy: RetryPolicy | None = None,
    clock: Clock = now_utc,
) -> SweepReport:
    """Deliver every pending entry now, whatever its scheduled time.

    Run when the service shuts down so accumulated changes are not held back
    until the next start. Outcomes are recorded exactly as in a sweep.
    """

    policy = policy or RetryPolicy.from_settings()
    repository = NotificationQueueRepository(session)
    report = SweepReport()

    pending = repository.list_pending()
    if not pending:
        return report

    logger.info("Flushing %s pending notification(s)", len(pending))
    _deliver_all(repository, pending, sender=sender, policy=policy, clock=clock, report=report)
    _log_report("Flush", report)
    return report


def _deliver_all(
    repository: NotificationQueueRepository,
    entries: Iterable[QueueEntry],
    *,
    sender: NotificationSender,
    policy: RetryPolicy,
    clock: Clock,
    report: SweepReport,
) -> None:
    for entry in entries:
        report.examined += 1
        started = clock()
        try:
            result = sender.send(entry)
        except Exception as exc:
            logger.exception("Sender raised for queue entry %s", entry.id)
            result = DeliveryResult.transient(str(exc) or exc.__class__.__name__)

        transition = policy.resolve(entry, result, clock())
        try:
            applied = repository.apply_transition(entry, transition, now=clock())
        except SQLAlchemyError:
            repository.session.rollback()
            logger.exception("Failed to record delivery outcome for queue entry %s", entry.id)
            report.errors += 1
            continue

        if not applied:
            # Merged or removed while the attempt was in flight. A merged row
            # keeps only its undelivered changes and goes out when due again.
            report.conflicts += 1
            if result.succeeded and _rebase(repository, entry, started, clock()):
                report.sent += 1
            else:
                logger.warning(
                    "Queue entry %s changed during delivery; outcome %s not recorded",
                    entry.id,
                    result.outcome.value,
                )
            continue

        if transition.status is QueueStatus.SENT:
            report.sent += 1
        elif transition.status is QueueStatus.FAILED:
            report.failed += 1
            logger.error(
                "Queue entry %s failed permanently after %s attempt(s): %s",
                entry.id,
                transition.retry_count,
                transition.error_message,
            )
        else:
            report.retried += 1
            logger.warning(
                "Queue entry %s failed (attempt %s/%s), will retry at %s",
                entry.id,
                transition.retry_count,
                policy.max_retries,
                transition.scheduled_send_time.isoformat()
                if transition.scheduled_send_time
                else None,
            )


def _rebase(
    repository: NotificationQueueRepository,
    entry: QueueEntry,
    started: datetime,
    now: datetime,
) -> bool:
    """Keep only the changes merged in after ``entry`` was delivered."""

    try:
        rebased = repository.rebase_after_delivery(entry, attempt_started=started, now=now)
    except SQLAlchemyError:
        repository.session.rollback()
        logger.exception("Failed to rebase queue entry %s after delivery", entry.id)
        return False
    if rebased is None:
        return False
    logger.info(
        "Queue entry %s delivered %s change(s); %s newer change(s) stay queued until %s",
        entry.id,
        entry.change_count,
        rebased.change_count,
        rebased.scheduled_send_time.isoformat() if rebased.scheduled_send_time else None,
    )
    return True


def _log_report(label: str, report: SweepReport) -> None:
    logger.info(
        "%s finished: %s sent, %s retrying, %s failed, %s conflicts, %s errors",
        label,
        report.sent,
        report.retried,
        report.failed,
        report.conflicts,
        report.errors,
    )


__all__ = ["SweepReport", "flush_pending", "run_dispatch_sweep", "select_due"]
