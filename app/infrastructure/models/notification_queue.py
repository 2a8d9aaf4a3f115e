"""SQLAlchemy model for the persistent notification queue."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)

from app.infrastructure.database import Base
from app.utils import now_utc_naive


class NotificationQueueModel(Base):
    """Database representation of a queued task notification."""

    __tablename__ = "notification_queue"
    __table_args__ = (
        # At most one accumulating pending row per (recipient, task, kind).
        Index(
            "uq_notification_queue_pending_key",
            "user_id",
            "task_id",
            "notification_type",
            unique=True,
            sqlite_where=text("status = 'pending' AND accumulating = 1"),
            postgresql_where=text("status = 'pending' AND accumulating"),
            mssql_where=text("status = 'pending' AND accumulating = 1"),
        ),
        Index("ix_notification_queue_due", "status", "scheduled_send_time"),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    task_id = Column(String(64), nullable=False, index=True)
    notification_type = Column(String(20), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    task_data = Column(JSON, nullable=False, default=dict)
    participants_data = Column(JSON, nullable=False, default=dict)
    actor_data = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    accumulating = Column(Boolean, nullable=False, default=True)
    scheduled_send_time = Column(DateTime(), nullable=False)
    first_change_time = Column(DateTime(), nullable=False)
    last_change_time = Column(DateTime(), nullable=False)
    change_count = Column(Integer, nullable=False, default=1)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(), nullable=False, default=now_utc_naive)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_utc_naive,
        onupdate=now_utc_naive,
    )
    sent_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationQueueModel"]
