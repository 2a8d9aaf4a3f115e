"""Tests for fanning task activity out to its participants."""

from __future__ import annotations

import pytest

from app.application.use_cases.notification_queue import (
    determine_recipients,
    list_queue,
    notify_task_activity,
)
from app.domain.entities import NotificationKind

from conftest import make_actor, make_participants, make_task


def test_new_task_only_reaches_assignee_and_requester() -> None:
    participants = make_participants(
        assignee="alice", requester="bob", watchers=["wendy"], collaborators=["colin"]
    )

    recipients = determine_recipients("create_task", participants, actor_user_id="carol")

    assert recipients == [
        ("alice", NotificationKind.ASSIGNEE),
        ("bob", NotificationKind.REQUESTER),
    ]


def test_updates_reach_every_participant_except_actor() -> None:
    participants = make_participants(
        assignee="alice", requester="bob", watchers=["wendy", "carol"], collaborators=["colin"]
    )

    recipients = dict(determine_recipients("update_task", participants, actor_user_id="carol"))

    assert recipients == {
        "alice": NotificationKind.ASSIGNEE,
        "bob": NotificationKind.REQUESTER,
        "colin": NotificationKind.COLLABORATOR,
        "wendy": NotificationKind.WATCHER,
    }


@pytest.mark.parametrize(
    ("participants", "expected"),
    [
        (make_participants(assignee="alice", requester="alice"), NotificationKind.ASSIGNEE),
        (
            make_participants(assignee=None, requester="alice", watchers=["alice"]),
            NotificationKind.REQUESTER,
        ),
        (
            make_participants(
                assignee=None, requester=None, watchers=["alice"], collaborators=["alice"]
            ),
            NotificationKind.COLLABORATOR,
        ),
    ],
)
def test_user_with_several_roles_gets_one_entry(participants, expected) -> None:
    recipients = determine_recipients("create_comment", participants, actor_user_id=None)

    assert recipients == [("alice", expected)]


def test_actor_acting_on_own_task_hears_nothing() -> None:
    participants = make_participants(assignee="alice", requester=None)

    assert determine_recipients("move_task", participants, actor_user_id="alice") == []


def test_notify_task_activity_queues_one_entry_per_recipient(session, clock) -> None:
    participants = make_participants(
        assignee="alice", requester="bob", watchers=["wendy"], collaborators=[]
    )

    entries = notify_task_activity(
        session,
        action="move_task",
        task=make_task(),
        participants=participants,
        actor=make_actor("bob"),
        details="Moved to Done",
        delay_minutes=15,
        clock=clock,
    )

    assert {(entry.user_id, entry.notification_type) for entry in entries} == {
        ("alice", NotificationKind.ASSIGNEE),
        ("wendy", NotificationKind.WATCHER),
    }
    assert len(list_queue(session)) == 2


def test_notify_task_activity_requires_task_id(session, clock) -> None:
    with pytest.raises(ValueError, match="Task is required"):
        notify_task_activity(
            session,
            action="update_task",
            task=make_task(task_id=""),
            participants=make_participants(),
            clock=clock,
        )
