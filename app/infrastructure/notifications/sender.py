"""Delivery of queue entries through the email transport."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Protocol

from app.config import get_settings
from app.domain.entities import DeliveryResult, QueueEntry
from app.infrastructure.email import EmailDeliveryError, deliver_email

from .messages import compose_message

logger = logging.getLogger(__name__)

EmailTransport = Callable[[str, str, str], None]

_DEFAULT_MAX_WORKERS = 4


class NotificationSender(Protocol):
    """Anything able to attempt the delivery of one queue entry."""

    def send(self, entry: QueueEntry) -> DeliveryResult:
        ...


class EmailNotificationSender:
    """Send queue entries by email and classify the outcome.

    The sender never touches the queue; the caller decides what the returned
    :class:`DeliveryResult` means for the entry.

    Transport calls run on a small worker pool so a slow call can be abandoned
    after ``timeout_seconds``. A running thread cannot be cancelled, so after a
    timeout the pool is replaced and later sends never queue behind the stuck
    worker. The transport is expected to bound its own I/O as well (see
    :func:`deliver_email`), which lets abandoned workers finish eventually.
    """

    def __init__(
        self,
        transport: EmailTransport = deliver_email,
        *,
        timeout_seconds: float | None = None,
        max_workers: int = _DEFAULT_MAX_WORKERS,
    ) -> None:
        self._transport = transport
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().send_timeout_seconds
        )
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._executor = self._new_executor()

    def send(self, entry: QueueEntry) -> DeliveryResult:
        recipient = entry.participants_data.find(entry.user_id)
        if recipient is None or not recipient.email:
            return DeliveryResult.permanent(
                f"No email address for recipient {entry.user_id} in the task snapshot"
            )

        message = compose_message(entry)
        with self._lock:
            executor = self._executor
            future = executor.submit(
                self._transport, message.subject, message.html, recipient.email
            )
        try:
            future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            self._retire(executor)
            logger.warning(
                "Delivery of queue entry %s timed out after %ss", entry.id, self._timeout
            )
            return DeliveryResult.transient(
                f"Delivery timed out after {self._timeout} seconds"
            )
        except EmailDeliveryError as exc:
            if exc.permanent:
                return DeliveryResult.permanent(str(exc))
            return DeliveryResult.transient(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error delivering queue entry %s", entry.id)
            return DeliveryResult.transient(str(exc) or exc.__class__.__name__)

        logger.info(
            "Queue entry %s delivered to %s (%s change(s))",
            entry.id,
            recipient.email,
            entry.change_count,
        )
        return DeliveryResult.success()

    def close(self) -> None:
        with self._lock:
            self._executor.shutdown(wait=False)

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="notification-send"
        )

    def _retire(self, executor: ThreadPoolExecutor) -> None:
        with self._lock:
            if self._executor is not executor:
                return
            self._executor = self._new_executor()
        # Work already queued on the old pool still runs; nothing new goes there.
        executor.shutdown(wait=False)
        logger.warning("Replaced notification send pool after a stuck delivery")


__all__ = ["EmailNotificationSender", "EmailTransport", "NotificationSender"]
