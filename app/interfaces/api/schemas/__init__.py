from .notification_queue import (
    DeleteResponse,
    NotificationEventCreate,
    ParticipantSchema,
    ParticipantsSchema,
    QueueEntryRead,
    QueueIdsRequest,
    QueueStatsRead,
    SendNowResponse,
    TaskActivityCreate,
    TaskSnapshotSchema,
)

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
