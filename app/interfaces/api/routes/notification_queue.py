"""Operator endpoints for inspecting and acting on the notification queue."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.use_cases.notification_queue import (
    delete_all_sent as delete_all_sent_uc,
    delete_entries as delete_entries_uc,
    get_queue_entry as get_queue_entry_uc,
    list_queue as list_queue_uc,
    queue_stats as queue_stats_uc,
    send_now as send_now_uc,
)
from app.domain.entities import QueueStatus
from app.infrastructure.database import get_db
from app.infrastructure.notifications import NotificationSender
from app.infrastructure.repositories import QueueFilter
from app.interfaces.api.dependencies import get_notification_sender
from app.interfaces.api.schemas import (
    DeleteResponse,
    QueueEntryRead,
    QueueIdsRequest,
    QueueStatsRead,
    SendNowResponse,
)

router = APIRouter(prefix="/admin/notification-queue", tags=["notification-queue"])


@router.get("/", response_model=list[QueueEntryRead])
def list_notification_queue(
    status_filter: QueueStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=200),
    user_id: str | None = None,
    task_id: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = Query(default=500, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[QueueEntryRead]:
    """Return queue entries, most recently updated first."""

    filters = QueueFilter(
        status=status_filter,
        user_id=user_id,
        task_id=task_id,
        search=search,
        since=since,
        until=until,
        limit=limit,
    )
    return [QueueEntryRead.from_entity(entry) for entry in list_queue_uc(db, filters)]


@router.get("/stats", response_model=QueueStatsRead)
def notification_queue_stats(db: Session = Depends(get_db)) -> QueueStatsRead:
    """Return the number of entries per status."""

    counts = queue_stats_uc(db)
    return QueueStatsRead(
        pending=counts[QueueStatus.PENDING],
        sent=counts[QueueStatus.SENT],
        failed=counts[QueueStatus.FAILED],
        total=sum(counts.values()),
    )


@router.get("/{entry_id}", response_model=QueueEntryRead)
def get_notification_queue_entry(
    entry_id: str, db: Session = Depends(get_db)
) -> QueueEntryRead:
    try:
        entry = get_queue_entry_uc(db, entry_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return QueueEntryRead.from_entity(entry)


@router.post("/send", response_model=SendNowResponse)
def send_notifications_now(
    payload: QueueIdsRequest,
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_notification_sender),
) -> SendNowResponse:
    """Send the selected entries immediately."""

    try:
        report = send_now_uc(db, payload.unique_ids(), sender=sender)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SendNowResponse(
        sent_count=report.sent_count,
        skipped_already_sent=report.skipped_already_sent,
        errors=report.errors,
    )


@router.post("/delete", response_model=DeleteResponse)
def delete_notifications(
    payload: QueueIdsRequest, db: Session = Depends(get_db)
) -> DeleteResponse:
    """Delete the selected entries whatever their status."""

    try:
        deleted = delete_entries_uc(db, payload.unique_ids())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DeleteResponse(deleted_count=deleted)


@router.delete("/sent", response_model=DeleteResponse)
def delete_sent_notifications(db: Session = Depends(get_db)) -> DeleteResponse:
    """Delete every entry that has already been sent."""

    return DeleteResponse(deleted_count=delete_all_sent_uc(db))


__all__ = ["router"]
