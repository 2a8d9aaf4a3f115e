"""Build the consolidated email for a queue entry."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from urllib.parse import quote

from app.config import get_settings
from app.domain.entities import NotificationKind, QueueEntry
from app.utils import describe_time_span, to_app_timezone

_ROLE_LABELS = {
    NotificationKind.ASSIGNEE: "you are assigned to",
    NotificationKind.WATCHER: "you are watching",
    NotificationKind.COLLABORATOR: "you collaborate on",
    NotificationKind.REQUESTER: "you requested",
}


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str


def compose_message(entry: QueueEntry) -> EmailMessage:
    """Return subject and HTML body describing ``entry``."""

    settings = get_settings()
    task = entry.task_data
    actor_name = (entry.actor_data.name or entry.actor_data.email) if entry.actor_data else None

    if entry.change_count > 1:
        summary = f"{entry.change_count} changes"
    else:
        summary = entry.action.replace("_", " ")
    subject = f"[{settings.site_name}] {task.label}: {summary}"

    paragraphs = [
        f"<p>A task {escape(_ROLE_LABELS[entry.notification_type])} was updated"
        + (f" by <strong>{escape(actor_name)}</strong>" if actor_name else "")
        + ".</p>",
        f"<p><strong>{escape(task.label)}</strong>"
        + (f" &middot; {escape(task.board_title)}" if task.board_title else "")
        + (f" / {escape(task.column_title)}" if task.column_title else "")
        + "</p>",
    ]
    if entry.change_count > 1 and entry.first_change_time and entry.last_change_time:
        span = describe_time_span(entry.first_change_time, entry.last_change_time)
        paragraphs.append(
            f"<p>{entry.change_count} changes were made over {escape(span)}. "
            "The latest one:</p>"
        )
    paragraphs.append(f"<p>{format_change(entry.details, entry.old_value, entry.new_value)}</p>")
    if entry.last_change_time:
        changed_at = to_app_timezone(entry.last_change_time).strftime("%Y-%m-%d %H:%M %Z")
        paragraphs.append(f"<p>Last change: {escape(changed_at)}</p>")
    link = task_link(task.url, task.id, settings.site_url)
    if link:
        paragraphs.append(f'<p><a href="{escape(link, quote=True)}">Open task</a></p>')
    return EmailMessage(subject=subject, html="".join(paragraphs))


def task_link(url: str | None, task_id: str | None, site_url: str | None) -> str | None:
    """Return the snapshot URL, or a link built from ``site_url`` and the task id."""

    if url:
        return url
    if site_url and task_id:
        return f"{site_url.rstrip('/')}#task#{quote(task_id, safe='')}"
    return None


def format_change(details: str | None, old_value: str | None, new_value: str | None) -> str:
    if old_value and new_value:
        return (
            f"<strong>Before:</strong> {escape(old_value)}<br>"
            f"<strong>After:</strong> {escape(new_value)}"
        )
    if new_value:
        return f"<strong>Set to:</strong> {escape(new_value)}"
    if old_value:
        return f"<strong>Cleared</strong> (was: {escape(old_value)})"
    return escape(details or "")


__all__ = ["EmailMessage", "compose_message", "format_change", "task_link"]
