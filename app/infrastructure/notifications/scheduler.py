"""Background loop running the dispatch sweep on a fixed interval."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from anyio import to_thread
from sqlalchemy.orm import Session

from app.application.use_cases.notification_queue import (
    RetryPolicy,
    SweepReport,
    flush_pending,
    run_dispatch_sweep,
)
from app.utils import Clock, now_utc

from .sender import NotificationSender

logger = logging.getLogger(__name__)


class DispatchScheduler:
    """Run :func:`run_dispatch_sweep` periodically inside the event loop.

    The sweep itself is blocking (database and transport I/O), so each run is
    moved to a worker thread. A sweep is executed as soon as the scheduler
    starts so entries that became due while the process was down go out
    without waiting a full interval.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: NotificationSender,
        *,
        interval_seconds: float,
        policy: RetryPolicy | None = None,
        batch_size: int | None = None,
        clock: Clock = now_utc,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender
        self._interval = interval_seconds
        self._policy = policy
        self._batch_size = batch_size
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(
            "Starting notification queue processor (checks every %s seconds)", self._interval
        )
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Notification queue processor stopped")

    async def run_once(self) -> SweepReport | None:
        try:
            return await to_thread.run_sync(self._sweep)
        except Exception:
            logger.exception("Error processing ready notifications")
            return None

    async def flush(self) -> SweepReport | None:
        """Deliver every pending entry now; meant to run after :meth:`stop`."""

        try:
            return await to_thread.run_sync(self._flush)
        except Exception:
            logger.exception("Error flushing pending notifications")
            return None

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)

    def _sweep(self) -> SweepReport:
        session = self._session_factory()
        try:
            return run_dispatch_sweep(
                session,
                sender=self._sender,
                policy=self._policy,
                clock=self._clock,
                batch_size=self._batch_size,
            )
        finally:
            session.close()

    def _flush(self) -> SweepReport:
        session = self._session_factory()
        try:
            return flush_pending(
                session, sender=self._sender, policy=self._policy, clock=self._clock
            )
        finally:
            session.close()


__all__ = ["DispatchScheduler"]
