"""Intake endpoints used by task management services to report changes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.application.use_cases.notification_queue import (
    notify as notify_uc,
    notify_task_activity as notify_task_activity_uc,
)
from app.infrastructure.database import get_db
from app.interfaces.api.schemas import (
    NotificationEventCreate,
    QueueEntryRead,
    TaskActivityCreate,
)

router = APIRouter(prefix="/notification-events", tags=["notification-events"])


@router.post(
    "/",
    response_model=QueueEntryRead | None,
    status_code=status.HTTP_202_ACCEPTED,
)
def create_notification_event(
    payload: NotificationEventCreate,
    db: Session = Depends(get_db),
):
    """Queue (or accumulate) a notification for one recipient."""

    try:
        entry = notify_uc(
            db,
            user_id=payload.user_id,
            task_id=payload.task_id,
            notification_type=payload.notification_type,
            action=payload.action,
            details=payload.details,
            old_value=payload.old_value,
            new_value=payload.new_value,
            task=payload.task.to_snapshot(),
            participants=payload.participants.to_snapshot(),
            actor=payload.actor.to_snapshot() if payload.actor else None,
            delay_minutes=payload.delay_minutes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if entry is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return QueueEntryRead.from_entity(entry)


@router.post(
    "/activity",
    response_model=list[QueueEntryRead],
    status_code=status.HTTP_202_ACCEPTED,
)
def create_task_activity(
    payload: TaskActivityCreate, db: Session = Depends(get_db)
) -> list[QueueEntryRead]:
    """Queue notifications for every participant of the task except the actor."""

    try:
        entries = notify_task_activity_uc(
            db,
            action=payload.action,
            task=payload.task.to_snapshot(),
            participants=payload.participants.to_snapshot(),
            actor=payload.actor.to_snapshot() if payload.actor else None,
            details=payload.details,
            old_value=payload.old_value,
            new_value=payload.new_value,
            delay_minutes=payload.delay_minutes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [QueueEntryRead.from_entity(entry) for entry in entries]


__all__ = ["router"]
