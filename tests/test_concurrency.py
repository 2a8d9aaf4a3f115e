"""Concurrent intake against a file backed SQLite database."""

from __future__ import annotations

import threading

from app.application.use_cases.notification_queue import notify
from app.domain.entities import NotificationKind, QueueStatus
from app.infrastructure.repositories import NotificationQueueRepository, QueueFilter

from conftest import make_participants, make_task

WRITERS = 4
EVENTS_PER_WRITER = 5


def test_concurrent_writers_share_one_pending_entry(session_factory, session) -> None:
    barrier = threading.Barrier(WRITERS)
    failures: list[BaseException] = []

    def writer(index: int) -> None:
        db = session_factory()
        try:
            barrier.wait()
            for event in range(EVENTS_PER_WRITER):
                notify(
                    db,
                    user_id="alice",
                    task_id="task-1",
                    notification_type=NotificationKind.ASSIGNEE,
                    action="update_task",
                    task=make_task(),
                    participants=make_participants(),
                    details=f"writer {index} event {event}",
                    delay_minutes=30,
                )
        except BaseException as exc:  # pragma: no cover - surfaced below
            failures.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=writer, args=(index,)) for index in range(WRITERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert failures == []
    entries = NotificationQueueRepository(session).list(
        QueueFilter(status=QueueStatus.PENDING, limit=None)
    )
    assert len(entries) == 1
    assert entries[0].change_count == WRITERS * EVENTS_PER_WRITER
    assert entries[0].last_change_time >= entries[0].first_change_time
    assert entries[0].scheduled_send_time >= entries[0].last_change_time
