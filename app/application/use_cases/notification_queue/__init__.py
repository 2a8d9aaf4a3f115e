"""Use cases for accumulating, dispatching and administering queued notifications."""

from .admin import (
    SendNowReport,
    delete_all_sent,
    delete_entries,
    get_queue_entry,
    list_queue,
    queue_stats,
    send_now,
)
from .dispatch import SweepReport, flush_pending, run_dispatch_sweep, select_due
from .intake import count_pending_for_user, notify
from .recipients import determine_recipients, notify_task_activity
from .retry import RetryPolicy

__all__ = [
    "RetryPolicy",
    "SendNowReport",
    "SweepReport",
    "count_pending_for_user",
    "delete_all_sent",
    "delete_entries",
    "determine_recipients",
    "flush_pending",
    "get_queue_entry",
    "list_queue",
    "notify",
    "notify_task_activity",
    "queue_stats",
    "run_dispatch_sweep",
    "select_due",
    "send_now",
]
