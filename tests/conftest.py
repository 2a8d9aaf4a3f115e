"""Shared fixtures: an isolated SQLite queue, a controllable clock and a fake sender."""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The database module builds its engine at import time.
_DEFAULT_DB = Path(tempfile.gettempdir()) / "notification-queue-tests.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DEFAULT_DB}")
os.environ["DISPATCHER_ENABLED"] = "false"
for _name in (
    "SENDGRID_API_KEY",
    "SENDGRID_SENDER",
    "DEMO_ENABLED",
    "APP_TIMEZONE",
    "SITE_URL",
):
    os.environ.pop(_name, None)

from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.config import reset_settings_cache  # noqa: E402
from app.domain.entities import (  # noqa: E402
    DeliveryResult,
    ParticipantSnapshot,
    ParticipantsSnapshot,
    QueueEntry,
    TaskSnapshot,
)
from app.infrastructure.database import build_engine, initialize_database  # noqa: E402
from app.utils import get_app_timezone  # noqa: E402

START = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock returning a fixed instant that tests move forward explicitly."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now

    def at(self, minutes: float) -> datetime:
        """Jump to ``minutes`` after the start of the test."""

        self.now = START + timedelta(minutes=minutes)
        return self.now


class FakeSender:
    """Sender returning scripted results and remembering what it was asked to send.

    Scripted items may be :class:`DeliveryResult` instances, exceptions (raised
    from ``send``) or callables receiving the entry.
    """

    def __init__(self, results: Iterable[object] = ()) -> None:
        self.results = list(results)
        self.sent: list[QueueEntry] = []

    def send(self, entry: QueueEntry) -> DeliveryResult:
        self.sent.append(entry)
        if not self.results:
            return DeliveryResult.success()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(entry)
        return result


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    get_app_timezone.cache_clear()
    yield
    reset_settings_cache()
    get_app_timezone.cache_clear()


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'queue.db'}")
    initialize_database(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sender() -> FakeSender:
    return FakeSender()


def make_task(task_id: str = "task-1", **overrides) -> TaskSnapshot:
    values = {
        "id": task_id,
        "title": "Prepare quarterly report",
        "ticket": "OPS-12",
        "board_title": "Operations",
        "column_title": "In progress",
        "priority": "High",
        "url": f"https://kanban.example.com/tasks/{task_id}",
    }
    values.update(overrides)
    return TaskSnapshot(**values)


def make_participants(
    assignee: str | None = "alice",
    requester: str | None = "bob",
    watchers: Iterable[str] = (),
    collaborators: Iterable[str] = (),
) -> ParticipantsSnapshot:
    def person(user_id: str) -> ParticipantSnapshot:
        return ParticipantSnapshot(
            user_id=user_id, name=user_id.title(), email=f"{user_id}@example.com"
        )

    return ParticipantsSnapshot(
        assignee=person(assignee) if assignee else None,
        requester=person(requester) if requester else None,
        watchers=tuple(person(user_id) for user_id in watchers),
        collaborators=tuple(person(user_id) for user_id in collaborators),
    )


def make_actor(user_id: str = "carol") -> ParticipantSnapshot:
    return ParticipantSnapshot(user_id=user_id, name=user_id.title(), email=f"{user_id}@example.com")
