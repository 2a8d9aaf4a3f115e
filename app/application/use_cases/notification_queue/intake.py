"""Event intake: create or accumulate queue entries for task notifications."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.entities import (
    ActorSnapshot,
    NotificationKind,
    ParticipantsSnapshot,
    QueueEntry,
    QueueKey,
    QueueStatus,
    TaskSnapshot,
)
from app.infrastructure.repositories import (
    EntryChanges,
    NotificationQueueRepository,
    is_pending_key_violation,
)
from app.utils import Clock, ensure_utc, now_utc

logger = logging.getLogger(__name__)

_MAX_CREATE_ATTEMPTS = 5


def notify(
    session: Session,
    *,
    user_id: str,
    task_id: str,
    notification_type: NotificationKind | str,
    action: str,
    task: TaskSnapshot,
    participants: ParticipantsSnapshot | None = None,
    actor: ActorSnapshot | None = None,
    details: str | None = None,
    old_value: str | None = None,
    new_value: str | None = None,
    delay_minutes: int | None = None,
    clock: Clock = now_utc,
) -> QueueEntry | None:
    """Queue a notification for ``user_id`` about a change to ``task_id``.

    With a positive delay, events for the same recipient, task and kind are
    folded into a single pending entry whose send time slides to
    ``now + delay`` on every change. A delay of zero queues an independent,
    immediately due entry. Returns ``None`` when queuing is disabled (demo
    deployments). Store errors propagate to the caller.
    """

    settings = get_settings()
    if settings.demo_enabled:
        logger.debug("Demo mode enabled; notification for %s/%s skipped", user_id, task_id)
        return None

    user_id = str(user_id or "").strip()
    task_id = str(task_id or "").strip()
    action = (action or "").strip()
    if not user_id:
        raise ValueError("Recipient is required")
    if not task_id:
        raise ValueError("Task is required")
    if not action:
        raise ValueError("Action is required")
    try:
        kind = NotificationKind(notification_type)
    except ValueError as exc:
        raise ValueError(f"Unknown notification type '{notification_type}'") from exc

    delay = settings.notification_delay_minutes if delay_minutes is None else delay_minutes
    if delay < 0:
        raise ValueError("Notification delay cannot be negative")

    if not task.id:
        task = replace(task, id=task_id)
    participants = participants or ParticipantsSnapshot()
    now = ensure_utc(clock())
    scheduled = now + timedelta(minutes=delay)
    repository = NotificationQueueRepository(session)

    if delay == 0:
        entry = repository.insert(
            _new_entry(
                user_id,
                task_id,
                kind,
                action,
                task=task,
                participants=participants,
                actor=actor,
                details=details,
                old_value=old_value,
                new_value=new_value,
                now=now,
                scheduled=scheduled,
                accumulating=False,
            )
        )
        logger.info(
            "Queued immediate notification %s for user %s, task %s", entry.id, user_id, task_id
        )
        return entry

    key = QueueKey(user_id, task_id, kind)
    changes = EntryChanges(
        action=action,
        details=details,
        old_value=old_value,
        new_value=new_value,
        task_data=task,
        participants_data=participants,
        actor_data=actor,
    )
    for _ in range(_MAX_CREATE_ATTEMPTS):
        merged = repository.merge_pending(key, changes, now=now, scheduled_send_time=scheduled)
        if merged is not None:
            logger.info(
                "Updated notification %s for user %s, task %s. Change count: %s",
                merged.id,
                user_id,
                task_id,
                merged.change_count,
            )
            return merged

        try:
            entry = repository.insert(
                _new_entry(
                    user_id,
                    task_id,
                    kind,
                    action,
                    task=task,
                    participants=participants,
                    actor=actor,
                    details=details,
                    old_value=old_value,
                    new_value=new_value,
                    now=now,
                    scheduled=scheduled,
                    accumulating=True,
                )
            )
        except IntegrityError as exc:
            if not is_pending_key_violation(exc):
                raise
            # Another writer created the pending entry first; merge into it.
            logger.debug("Pending notification for %s already created; merging", key)
            continue

        logger.info(
            "Created notification %s for user %s, task %s. Will send at %s",
            entry.id,
            user_id,
            task_id,
            entry.scheduled_send_time.isoformat() if entry.scheduled_send_time else None,
        )
        return entry

    raise RuntimeError(f"Could not queue notification for {key} after concurrent updates")


def count_pending_for_user(session: Session, user_id: str) -> int:
    """Return how many notifications are still waiting to be sent to ``user_id``."""

    return NotificationQueueRepository(session).count_pending_for_user(user_id)


def _new_entry(
    user_id: str,
    task_id: str,
    kind: NotificationKind,
    action: str,
    *,
    task: TaskSnapshot,
    participants: ParticipantsSnapshot,
    actor: ActorSnapshot | None,
    details: str | None,
    old_value: str | None,
    new_value: str | None,
    now,
    scheduled,
    accumulating: bool,
) -> QueueEntry:
    return QueueEntry(
        id=None,
        user_id=user_id,
        task_id=task_id,
        notification_type=kind,
        action=action,
        task_data=task,
        participants_data=participants,
        actor_data=actor,
        details=details,
        old_value=old_value,
        new_value=new_value,
        status=QueueStatus.PENDING,
        accumulating=accumulating,
        scheduled_send_time=scheduled,
        first_change_time=now,
        last_change_time=now,
        change_count=1,
        retry_count=0,
        created_at=now,
        updated_at=now,
    )


__all__ = ["count_pending_for_user", "notify"]
