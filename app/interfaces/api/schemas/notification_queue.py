"""Pydantic models describing notification queue payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.entities import (
    NotificationKind,
    ParticipantSnapshot,
    ParticipantsSnapshot,
    QueueEntry,
    QueueStatus,
    TaskSnapshot,
)
from app.utils import to_app_timezone


class ParticipantSchema(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str | None = None
    email: str | None = None

    def to_snapshot(self) -> ParticipantSnapshot:
        return ParticipantSnapshot(user_id=self.user_id, name=self.name, email=self.email)

    @classmethod
    def from_snapshot(cls, snapshot: ParticipantSnapshot | None) -> "ParticipantSchema | None":
        if snapshot is None:
            return None
        return cls(user_id=snapshot.user_id, name=snapshot.name, email=snapshot.email)


class TaskSnapshotSchema(BaseModel):
    id: str | None = None
    title: str | None = None
    ticket: str | None = None
    board_title: str | None = None
    column_title: str | None = None
    priority: str | None = None
    url: str | None = None

    def to_snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            id=self.id or "",
            title=self.title,
            ticket=self.ticket,
            board_title=self.board_title,
            column_title=self.column_title,
            priority=self.priority,
            url=self.url,
        )


class ParticipantsSchema(BaseModel):
    assignee: ParticipantSchema | None = None
    requester: ParticipantSchema | None = None
    watchers: list[ParticipantSchema] = Field(default_factory=list)
    collaborators: list[ParticipantSchema] = Field(default_factory=list)

    def to_snapshot(self) -> ParticipantsSnapshot:
        return ParticipantsSnapshot(
            assignee=self.assignee.to_snapshot() if self.assignee else None,
            requester=self.requester.to_snapshot() if self.requester else None,
            watchers=tuple(item.to_snapshot() for item in self.watchers),
            collaborators=tuple(item.to_snapshot() for item in self.collaborators),
        )

    @classmethod
    def from_snapshot(cls, snapshot: ParticipantsSnapshot) -> "ParticipantsSchema":
        return cls(
            assignee=ParticipantSchema.from_snapshot(snapshot.assignee),
            requester=ParticipantSchema.from_snapshot(snapshot.requester),
            watchers=[ParticipantSchema.from_snapshot(item) for item in snapshot.watchers],
            collaborators=[
                ParticipantSchema.from_snapshot(item) for item in snapshot.collaborators
            ],
        )


class NotificationEventCreate(BaseModel):
    """Payload describing a single notification-worthy change."""

    user_id: str = Field(..., min_length=1, description="Recipient identifier")
    task_id: str = Field(..., min_length=1)
    notification_type: NotificationKind
    action: str = Field(..., min_length=1, max_length=50)
    details: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    task: TaskSnapshotSchema = Field(default_factory=TaskSnapshotSchema)
    participants: ParticipantsSchema = Field(default_factory=ParticipantsSchema)
    actor: ParticipantSchema | None = None
    delay_minutes: int | None = Field(
        default=None, ge=0, description="Accumulation window; defaults to the configured delay"
    )


class TaskActivityCreate(BaseModel):
    """Payload describing a task activity fanned out to every participant."""

    action: str = Field(..., min_length=1, max_length=50)
    task: TaskSnapshotSchema
    participants: ParticipantsSchema = Field(default_factory=ParticipantsSchema)
    actor: ParticipantSchema | None = None
    details: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    delay_minutes: int | None = Field(default=None, ge=0)


class QueueEntryRead(BaseModel):
    """Representation of a queue entry for operators."""

    id: str
    user_id: str
    task_id: str
    notification_type: NotificationKind
    action: str
    display_action: str
    details: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    task: TaskSnapshotSchema
    participants: ParticipantsSchema
    actor: ParticipantSchema | None = None
    status: QueueStatus
    accumulating: bool
    scheduled_send_time: datetime
    first_change_time: datetime
    last_change_time: datetime
    change_count: int
    retry_count: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    sent_at: datetime | None = None

    @classmethod
    def from_entity(cls, entry: QueueEntry) -> "QueueEntryRead":
        task = entry.task_data
        return cls(
            id=entry.id or "",
            user_id=entry.user_id,
            task_id=entry.task_id,
            notification_type=entry.notification_type,
            action=entry.action,
            display_action=entry.display_action,
            details=entry.details,
            old_value=entry.old_value,
            new_value=entry.new_value,
            task=TaskSnapshotSchema(
                id=task.id,
                title=task.title,
                ticket=task.ticket,
                board_title=task.board_title,
                column_title=task.column_title,
                priority=task.priority,
                url=task.url,
            ),
            participants=ParticipantsSchema.from_snapshot(entry.participants_data),
            actor=ParticipantSchema.from_snapshot(entry.actor_data),
            status=entry.status,
            accumulating=entry.accumulating,
            scheduled_send_time=to_app_timezone(entry.scheduled_send_time),
            first_change_time=to_app_timezone(entry.first_change_time),
            last_change_time=to_app_timezone(entry.last_change_time),
            change_count=entry.change_count,
            retry_count=entry.retry_count,
            error_message=entry.error_message,
            created_at=to_app_timezone(entry.created_at),
            updated_at=to_app_timezone(entry.updated_at),
            sent_at=to_app_timezone(entry.sent_at),
        )


class QueueIdsRequest(BaseModel):
    """Payload used to act on a batch of queue entries."""

    ids: list[str] = Field(..., min_length=1, description="Queue entry identifiers")

    def unique_ids(self) -> list[str]:
        """Return the list of identifiers without duplicates preserving order."""

        unique: list[str] = []
        seen: set[str] = set()
        for entry_id in self.ids:
            if entry_id in seen:
                continue
            seen.add(entry_id)
            unique.append(entry_id)
        return unique


class SendNowResponse(BaseModel):
    sent_count: int
    skipped_already_sent: int
    errors: list[str] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    deleted_count: int


class QueueStatsRead(BaseModel):
    pending: int
    sent: int
    failed: int
    total: int


__all__ = [
    "DeleteResponse",
    "NotificationEventCreate",
    "ParticipantSchema",
    "ParticipantsSchema",
    "QueueEntryRead",
    "QueueIdsRequest",
    "QueueStatsRead",
    "SendNowResponse",
    "TaskActivityCreate",
    "TaskSnapshotSchema",
]
