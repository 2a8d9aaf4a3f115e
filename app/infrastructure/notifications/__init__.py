"""Notification delivery helpers for the infrastructure layer."""

from .messages import EmailMessage, compose_message, format_change, task_link
from .sender import EmailNotificationSender, EmailTransport, NotificationSender

__all__ = [
    "EmailMessage",
    "EmailNotificationSender",
    "EmailTransport",
    "NotificationSender",
    "compose_message",
    "format_change",
    "task_link",
]
