"""FastAPI dependency utilities."""

from functools import lru_cache

from app.infrastructure.notifications import EmailNotificationSender, NotificationSender


@lru_cache
def get_notification_sender() -> NotificationSender:
    """Return the sender shared by the dispatcher and operator actions."""

    return EmailNotificationSender()
