"""Persistence helpers for the notification queue."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import String, case, cast, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.entities import (
    NotificationKind,
    ParticipantsSnapshot,
    ParticipantSnapshot,
    QueueEntry,
    QueueKey,
    QueueStatus,
    QueueTransition,
    TaskSnapshot,
)
from app.infrastructure.models import NotificationQueueModel
from app.utils import ensure_utc_naive, ensure_utc

_M = NotificationQueueModel

_PENDING_KEY_INDEX = "uq_notification_queue_pending_key"
# SQLite names the indexed columns instead of the index.
_PENDING_KEY_COLUMNS = (
    "notification_queue.user_id, notification_queue.task_id, "
    "notification_queue.notification_type"
)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class QueueFilter:
    """Criteria accepted by :meth:`NotificationQueueRepository.list`."""

    status: QueueStatus | None = None
    user_id: str | None = None
    task_id: str | None = None
    search: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = 500


@dataclass(frozen=True)
class EntryChanges:
    """Payload carried by an event that is merged into a pending entry."""

    action: str
    details: str | None
    old_value: str | None
    new_value: str | None
    task_data: TaskSnapshot
    participants_data: ParticipantsSnapshot
    actor_data: ParticipantSnapshot | None


class NotificationQueueRepository:
    """Provide storage operations for :class:`QueueEntry` objects.

    Every mutation that depends on the current row state is issued as a single
    conditional ``UPDATE`` so that intake merges and dispatcher transitions
    never interleave inside one entry.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, entry_id: str) -> QueueEntry | None:
        model = self.session.get(_M, entry_id)
        if model is None:
            return None
        return self._to_entity(model)

    def list(self, filters: QueueFilter | None = None) -> list[QueueEntry]:
        filters = filters or QueueFilter()
        stmt = select(_M)
        if filters.status is not None:
            stmt = stmt.where(_M.status == QueueStatus(filters.status).value)
        if filters.user_id:
            stmt = stmt.where(_M.user_id == filters.user_id)
        if filters.task_id:
            stmt = stmt.where(_M.task_id == filters.task_id)
        if filters.since is not None:
            stmt = stmt.where(_M.updated_at >= ensure_utc_naive(filters.since))
        if filters.until is not None:
            stmt = stmt.where(_M.updated_at <= ensure_utc_naive(filters.until))
        search = (filters.search or "").strip()
        if search:
            pattern = f"%{_escape_like(search.lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(_M.user_id).like(pattern, escape="\\"),
                    func.lower(_M.task_id).like(pattern, escape="\\"),
                    func.lower(_M.action).like(pattern, escape="\\"),
                    func.lower(func.coalesce(_M.details, "")).like(pattern, escape="\\"),
                    func.lower(cast(_M.task_data, String)).like(pattern, escape="\\"),
                    func.lower(cast(_M.actor_data, String)).like(pattern, escape="\\"),
                    func.lower(cast(_M.participants_data, String)).like(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(_M.updated_at.desc(), _M.id.desc())
        if filters.limit is not None:
            stmt = stmt.limit(filters.limit)
        return [self._to_entity(model) for model in self.session.scalars(stmt).all()]

    def list_due(self, now: datetime, *, limit: int | None = None) -> list[QueueEntry]:
        stmt = (
            select(_M)
            .where(_M.status == QueueStatus.PENDING.value)
            .where(_M.scheduled_send_time <= ensure_utc_naive(now))
            .order_by(_M.scheduled_send_time.asc(), _M.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(stmt).all()]

    def list_pending(self, *, limit: int | None = None) -> list[QueueEntry]:
        stmt = (
            select(_M)
            .where(_M.status == QueueStatus.PENDING.value)
            .order_by(_M.scheduled_send_time.asc(), _M.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(stmt).all()]

    def count_by_status(self) -> dict[QueueStatus, int]:
        rows = self.session.execute(
            select(_M.status, func.count(_M.id)).group_by(_M.status)
        ).all()
        counts = {status: 0 for status in QueueStatus}
        for status, total in rows:
            counts[QueueStatus(status)] = int(total)
        return counts

    def count_pending_for_user(self, user_id: str) -> int:
        stmt = select(func.count(_M.id)).where(
            _M.user_id == user_id, _M.status == QueueStatus.PENDING.value
        )
        return int(self.session.scalar(stmt) or 0)

    def insert(self, entry: QueueEntry) -> QueueEntry:
        """Persist a new entry.

        Raises :class:`IntegrityError` (after rolling back) when another
        writer already holds the pending slot for the same key.
        """

        model = _M(id=entry.id or str(uuid.uuid4()))
        self._apply_entity_to_model(model, entry)
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        self.session.refresh(model)
        return self._to_entity(model)

    def merge_pending(
        self,
        key: QueueKey,
        changes: EntryChanges,
        *,
        now: datetime,
        scheduled_send_time: datetime,
    ) -> QueueEntry | None:
        """Fold ``changes`` into the pending entry for ``key`` if there is one.

        Timestamps only move forward: an event observed with an older clock
        reading still counts and still wins the payload, but it cannot pull
        ``last_change_time`` or ``scheduled_send_time`` backwards.
        """

        now_naive = ensure_utc_naive(now)
        scheduled_naive = ensure_utc_naive(scheduled_send_time)
        is_newer = _M.last_change_time > now_naive
        stmt = (
            update(_M)
            .where(*self._pending_key_clause(key))
            .values(
                action=changes.action,
                details=changes.details,
                old_value=changes.old_value,
                new_value=changes.new_value,
                task_data=changes.task_data.to_dict(),
                participants_data=changes.participants_data.to_dict(),
                actor_data=changes.actor_data.to_dict() if changes.actor_data else None,
                change_count=_M.change_count + 1,
                last_change_time=case((is_newer, _M.last_change_time), else_=now_naive),
                scheduled_send_time=case(
                    (is_newer, _M.scheduled_send_time), else_=scheduled_naive
                ),
                updated_at=now_naive,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.rollback()
            return None
        model = self.session.scalars(select(_M).where(*self._pending_key_clause(key))).one()
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def apply_transition(
        self,
        entry: QueueEntry,
        transition: QueueTransition,
        *,
        now: datetime,
        from_statuses: Sequence[QueueStatus] = (QueueStatus.PENDING,),
    ) -> bool:
        """Apply ``transition`` only if ``entry`` is unchanged since it was read.

        Returns ``False`` when the row was merged, deleted or moved to another
        status in the meantime.
        """

        if entry.id is None:
            raise ValueError("Queue entry id is required for updates")

        values: dict[str, object] = {
            "status": transition.status.value,
            "retry_count": transition.retry_count,
            "error_message": transition.error_message,
            "updated_at": ensure_utc_naive(now),
        }
        if transition.scheduled_send_time is not None:
            values["scheduled_send_time"] = ensure_utc_naive(
                transition.scheduled_send_time
            )
        if transition.sent_at is not None:
            values["sent_at"] = func.coalesce(
                _M.sent_at, ensure_utc_naive(transition.sent_at)
            )

        stmt = (
            update(_M)
            .where(
                _M.id == entry.id,
                _M.status.in_([status.value for status in from_statuses]),
                _M.change_count == entry.change_count,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def rebase_after_delivery(
        self, entry: QueueEntry, *, attempt_started: datetime, now: datetime
    ) -> QueueEntry | None:
        """Subtract the changes delivered with ``entry`` from its merged row.

        Used when a merge landed while ``entry`` was being delivered. The row
        stays pending and keeps its newer payload and schedule, but its
        ``change_count`` only counts the undelivered changes. Their first
        change is placed at ``attempt_started`` (or at ``last_change_time``
        when only one change is left). Returns ``None`` when the row was not
        merged into, e.g. because it was deleted or sent by someone else.
        """

        if entry.id is None:
            raise ValueError("Queue entry id is required for updates")

        delivered = entry.change_count
        remaining = _M.change_count - delivered
        stmt = (
            update(_M)
            .where(
                _M.id == entry.id,
                _M.status == QueueStatus.PENDING.value,
                _M.change_count > delivered,
            )
            .values(
                change_count=remaining,
                first_change_time=case(
                    (remaining == 1, _M.last_change_time),
                    else_=ensure_utc_naive(attempt_started),
                ),
                retry_count=0,
                error_message=None,
                updated_at=ensure_utc_naive(now),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount != 1:
            return None
        return self.get(entry.id)

    def delete_many(self, entry_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(entry_id for entry_id in entry_ids if entry_id))
        if not ids:
            return 0
        result = self.session.execute(
            delete(_M).where(_M.id.in_(ids)).execution_options(synchronize_session=False)
        )
        self.session.commit()
        return int(result.rowcount or 0)

    def delete_by_status(self, status: QueueStatus) -> int:
        result = self.session.execute(
            delete(_M)
            .where(_M.status == status.value)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return int(result.rowcount or 0)

    @staticmethod
    def _pending_key_clause(key: QueueKey) -> tuple:
        return (
            _M.user_id == key.user_id,
            _M.task_id == key.task_id,
            _M.notification_type == NotificationKind(key.notification_type).value,
            _M.status == QueueStatus.PENDING.value,
            _M.accumulating.is_(True),
        )

    @staticmethod
    def _apply_entity_to_model(model: NotificationQueueModel, entry: QueueEntry) -> None:
        model.user_id = entry.user_id
        model.task_id = entry.task_id
        model.notification_type = NotificationKind(entry.notification_type).value
        model.action = entry.action
        model.details = entry.details
        model.old_value = entry.old_value
        model.new_value = entry.new_value
        model.task_data = entry.task_data.to_dict()
        model.participants_data = entry.participants_data.to_dict()
        model.actor_data = entry.actor_data.to_dict() if entry.actor_data else None
        model.status = QueueStatus(entry.status).value
        model.accumulating = entry.accumulating
        model.scheduled_send_time = ensure_utc_naive(entry.scheduled_send_time)
        model.first_change_time = ensure_utc_naive(entry.first_change_time)
        model.last_change_time = ensure_utc_naive(entry.last_change_time)
        model.change_count = entry.change_count
        model.retry_count = entry.retry_count
        model.error_message = entry.error_message
        model.sent_at = ensure_utc_naive(entry.sent_at)
        if entry.created_at is not None:
            model.created_at = ensure_utc_naive(entry.created_at)
        if entry.updated_at is not None:
            model.updated_at = ensure_utc_naive(entry.updated_at)

    @staticmethod
    def _to_entity(model: NotificationQueueModel) -> QueueEntry:
        return QueueEntry(
            id=model.id,
            user_id=model.user_id,
            task_id=model.task_id,
            notification_type=NotificationKind(model.notification_type),
            action=model.action,
            details=model.details,
            old_value=model.old_value,
            new_value=model.new_value,
            task_data=TaskSnapshot.from_dict(model.task_data),
            participants_data=ParticipantsSnapshot.from_dict(model.participants_data),
            actor_data=ParticipantSnapshot.from_dict(model.actor_data),
            status=QueueStatus(model.status),
            accumulating=bool(model.accumulating),
            scheduled_send_time=ensure_utc(model.scheduled_send_time),
            first_change_time=ensure_utc(model.first_change_time),
            last_change_time=ensure_utc(model.last_change_time),
            change_count=model.change_count,
            retry_count=model.retry_count,
            error_message=model.error_message,
            sent_at=ensure_utc(model.sent_at),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


def is_pending_key_violation(exc: IntegrityError) -> bool:
    """Return ``True`` when ``exc`` reports a second pending entry for one key."""

    message = str(exc.orig if exc.orig is not None else exc)
    return _PENDING_KEY_INDEX in message or _PENDING_KEY_COLUMNS in message


__all__ = [
    "EntryChanges",
    "NotificationQueueRepository",
    "QueueFilter",
    "is_pending_key_violation",
]
