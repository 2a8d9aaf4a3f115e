"""Utility helpers for reusable functionality."""

from .datetime import (
    Clock,
    describe_time_span,
    ensure_utc,
    ensure_utc_naive,
    get_app_timezone,
    now_utc,
    now_utc_naive,
    to_app_timezone,
)

__all__ = [
    "Clock",
    "describe_time_span",
    "ensure_utc",
    "ensure_utc_naive",
    "get_app_timezone",
    "now_utc",
    "now_utc_naive",
    "to_app_timezone",
]
