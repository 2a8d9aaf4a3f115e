"""Utility helpers for sending notification emails via SendGrid."""

from __future__ import annotations

import json
import logging
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.config import get_settings

logger = logging.getLogger(__name__)

# Status codes worth retrying; every other 4xx means the request itself is bad.
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 409, 425, 429})


class EmailDeliveryError(Exception):
    """Raised when SendGrid does not accept a message."""

    def __init__(
        self, message: str, *, permanent: bool, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.permanent = permanent
        self.status_code = status_code


def _sendgrid_error_details(body: Any) -> str | None:
    """Turn a SendGrid error payload into a readable one-line description."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body

    if isinstance(body, dict):
        errors = body.get("errors")
        described = [
            f"{item['message']} (field: {item['field']})"
            if item.get("field")
            else str(item["message"])
            for item in (errors if isinstance(errors, list) else [])
            if isinstance(item, dict) and item.get("message")
        ]
        if described:
            return "; ".join(described)
        return json.dumps(body, default=str)
    if isinstance(body, list):
        return "; ".join(str(item) for item in body) or None
    return None


def is_permanent_status(status_code: int | None) -> bool:
    """Return ``True`` when retrying a request with ``status_code`` cannot help."""

    if status_code is None:
        return False
    return 400 <= status_code < 500 and status_code not in _RETRYABLE_CLIENT_STATUSES


def _describe_failure(status_code: int | None, details: str | None) -> str:
    if status_code and details:
        return f"SendGrid API request failed with status {status_code}: {details}"
    if status_code:
        return f"SendGrid API request failed with status {status_code}"
    if details:
        return f"SendGrid API request failed: {details}"
    return "SendGrid API request failed"


def is_email_configured() -> bool:
    settings = get_settings()
    return bool(settings.sendgrid_api_key and settings.sendgrid_sender)


def deliver_email(subject: str, html_content: str, recipient: str) -> None:
    """Send an email through SendGrid or raise :class:`EmailDeliveryError`."""

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        raise EmailDeliveryError(
            "SendGrid configuration incomplete; email delivery is disabled",
            permanent=True,
        )

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        client = SendGridAPIClient(settings.sendgrid_api_key)
        # Bounds the HTTP request itself; requests built from the client inherit it.
        client.client.timeout = settings.send_timeout_seconds
        response = client.send(message)
    except Exception as exc:
        status_code = getattr(exc, "status_code", None)
        details = _sendgrid_error_details(getattr(exc, "body", None))
        if status_code is None and details is None:
            details = str(exc) or exc.__class__.__name__
        description = _describe_failure(status_code, details)
        logger.error("%s", description)
        raise EmailDeliveryError(
            description,
            permanent=is_permanent_status(status_code),
            status_code=status_code,
        ) from exc

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        details = _sendgrid_error_details(getattr(response, "body", None))
        description = _describe_failure(status_code, details)
        logger.error("SendGrid API responded with an error: %s", description)
        raise EmailDeliveryError(
            description,
            permanent=is_permanent_status(
                status_code if isinstance(status_code, int) else None
            ),
            status_code=status_code if isinstance(status_code, int) else None,
        )


__all__ = [
    "EmailDeliveryError",
    "deliver_email",
    "is_email_configured",
    "is_permanent_status",
]
