"""Work out who hears about a task activity and queue one entry per recipient."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.domain.entities import (
    ActorSnapshot,
    NotificationKind,
    ParticipantsSnapshot,
    QueueEntry,
    TaskSnapshot,
)
from app.utils import Clock, now_utc

from .intake import notify

CREATE_TASK_ACTION = "create_task"

# Lower value wins when one user holds several roles on the task.
_KIND_PRIORITY = {
    NotificationKind.ASSIGNEE: 0,
    NotificationKind.REQUESTER: 1,
    NotificationKind.COLLABORATOR: 2,
    NotificationKind.WATCHER: 3,
}


def determine_recipients(
    action: str,
    participants: ParticipantsSnapshot,
    actor_user_id: str | None,
) -> list[tuple[str, NotificationKind]]:
    """Return ``(user_id, kind)`` pairs that should be notified about ``action``.

    New tasks only concern the assignee and the requester; every other
    activity (updates, moves, tag changes, comments) also reaches watchers
    and collaborators. The actor is never notified about their own change.
    """

    candidates: list[tuple[str, NotificationKind]] = []
    if participants.assignee is not None:
        candidates.append((participants.assignee.user_id, NotificationKind.ASSIGNEE))
    if participants.requester is not None:
        candidates.append((participants.requester.user_id, NotificationKind.REQUESTER))
    if action != CREATE_TASK_ACTION:
        candidates.extend(
            (item.user_id, NotificationKind.COLLABORATOR) for item in participants.collaborators
        )
        candidates.extend(
            (item.user_id, NotificationKind.WATCHER) for item in participants.watchers
        )

    chosen: dict[str, NotificationKind] = {}
    for user_id, kind in candidates:
        if not user_id or user_id == actor_user_id:
            continue
        current = chosen.get(user_id)
        if current is None or _KIND_PRIORITY[kind] < _KIND_PRIORITY[current]:
            chosen[user_id] = kind
    return list(chosen.items())


def notify_task_activity(
    session: Session,
    *,
    action: str,
    task: TaskSnapshot,
    participants: ParticipantsSnapshot,
    actor: ActorSnapshot | None = None,
    details: str | None = None,
    old_value: str | None = None,
    new_value: str | None = None,
    delay_minutes: int | None = None,
    clock: Clock = now_utc,
) -> list[QueueEntry]:
    """Queue notifications for everyone involved in ``task``."""

    if not task.id:
        raise ValueError("Task is required")

    entries: list[QueueEntry] = []
    actor_id = actor.user_id if actor else None
    for user_id, kind in determine_recipients(action, participants, actor_id):
        entry = notify(
            session,
            user_id=user_id,
            task_id=task.id,
            notification_type=kind,
            action=action,
            task=task,
            participants=participants,
            actor=actor,
            details=details,
            old_value=old_value,
            new_value=new_value,
            delay_minutes=delay_minutes,
            clock=clock,
        )
        if entry is not None:
            entries.append(entry)
    return entries


__all__ = ["CREATE_TASK_ACTION", "determine_recipients", "notify_task_activity"]
