"""Aggregate application use cases."""

from .notification_queue import notify, notify_task_activity, run_dispatch_sweep

__all__ = [
    "notify",
    "notify_task_activity",
    "run_dispatch_sweep",
]
