"""Point-in-time copies of task, participant and actor data stored in the queue."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass(frozen=True)
class ParticipantSnapshot:
    """A user involved in a task at the time the change happened."""

    user_id: str
    name: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ParticipantSnapshot | None":
        if not data or data.get("user_id") in (None, ""):
            return None
        return cls(
            user_id=str(data["user_id"]),
            name=_optional_str(data.get("name")),
            email=_optional_str(data.get("email")),
        )


ActorSnapshot = ParticipantSnapshot


@dataclass(frozen=True)
class TaskSnapshot:
    """Displayable task fields captured when the event was queued."""

    id: str
    title: str | None = None
    ticket: str | None = None
    board_title: str | None = None
    column_title: str | None = None
    priority: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TaskSnapshot":
        data = data or {}
        return cls(
            id=str(data.get("id") or ""),
            title=_optional_str(data.get("title")),
            ticket=_optional_str(data.get("ticket")),
            board_title=_optional_str(data.get("board_title")),
            column_title=_optional_str(data.get("column_title")),
            priority=_optional_str(data.get("priority")),
            url=_optional_str(data.get("url")),
        )

    @property
    def label(self) -> str:
        """Return ``"[TICKET] title"`` or whichever part is known."""

        parts = [f"[{self.ticket}]" if self.ticket else None, self.title]
        label = " ".join(part for part in parts if part)
        return label or f"Task {self.id}"


@dataclass(frozen=True)
class ParticipantsSnapshot:
    """Everyone attached to a task when the change happened."""

    assignee: ParticipantSnapshot | None = None
    requester: ParticipantSnapshot | None = None
    watchers: tuple[ParticipantSnapshot, ...] = field(default_factory=tuple)
    collaborators: tuple[ParticipantSnapshot, ...] = field(default_factory=tuple)

    def everyone(self) -> list[ParticipantSnapshot]:
        people: list[ParticipantSnapshot] = []
        if self.assignee is not None:
            people.append(self.assignee)
        if self.requester is not None:
            people.append(self.requester)
        people.extend(self.collaborators)
        people.extend(self.watchers)
        return people

    def find(self, user_id: str) -> ParticipantSnapshot | None:
        """Return the first participant snapshot matching ``user_id``."""

        for participant in self.everyone():
            if participant.user_id == user_id:
                return participant
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "assignee": self.assignee.to_dict() if self.assignee else None,
            "requester": self.requester.to_dict() if self.requester else None,
            "watchers": [watcher.to_dict() for watcher in self.watchers],
            "collaborators": [item.to_dict() for item in self.collaborators],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ParticipantsSnapshot":
        data = data or {}
        return cls(
            assignee=ParticipantSnapshot.from_dict(data.get("assignee")),
            requester=ParticipantSnapshot.from_dict(data.get("requester")),
            watchers=_participant_tuple(data.get("watchers")),
            collaborators=_participant_tuple(data.get("collaborators")),
        )


def _participant_tuple(items: Any) -> tuple[ParticipantSnapshot, ...]:
    if not isinstance(items, (list, tuple)):
        return ()
    parsed = (ParticipantSnapshot.from_dict(item) for item in items if isinstance(item, Mapping))
    return tuple(item for item in parsed if item is not None)


__all__ = [
    "ActorSnapshot",
    "ParticipantSnapshot",
    "ParticipantsSnapshot",
    "TaskSnapshot",
]
