"""Timezone handling for queue timestamps.

Scheduling arithmetic and storage use UTC: the database holds naive UTC
values, so comparisons such as ``scheduled_send_time <= now`` stay correct
across daylight saving changes on every backend. ``APP_TIMEZONE`` only
affects how timestamps are shown to people.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import get_settings

_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)

Clock = Callable[[], datetime]


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the timezone named by ``APP_TIMEZONE``.

    Accepts IANA names (``Europe/Madrid``) and fixed offsets (``UTC-05:00``).
    Anything unrecognised falls back to UTC.
    """

    name = (get_settings().app_timezone or "").strip()
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return _parse_utc_offset(name) or timezone.utc


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def now_utc_naive() -> datetime:
    """Current time as stored in the database."""

    return now_utc().replace(tzinfo=None)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Convert ``value`` to an aware UTC datetime.

    Naive values are taken to be database values, i.e. already in UTC.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_utc_naive(value: datetime | None) -> datetime | None:
    """Return the naive UTC form of ``value`` used for storage."""

    converted = ensure_utc(value)
    return converted.replace(tzinfo=None) if converted is not None else None


def to_app_timezone(value: datetime | None) -> datetime | None:
    """Express ``value`` in the application timezone for display."""

    converted = ensure_utc(value)
    return converted.astimezone(get_app_timezone()) if converted is not None else None


def describe_time_span(start: datetime, end: datetime) -> str:
    """Return a short human readable description of ``end - start``."""

    minutes = int((ensure_utc(end) - ensure_utc(start)).total_seconds() // 60)
    if minutes < 1:
        return "less than a minute"
    if minutes == 1:
        return "1 minute"
    if minutes < 60:
        return f"{minutes} minutes"
    hours = minutes // 60
    return "1 hour" if hours == 1 else f"{hours} hours"


def _parse_utc_offset(name: str) -> tzinfo | None:
    match = _OFFSET_PATTERN.match(name)
    if match is None:
        return None
    offset = timedelta(
        hours=int(match.group("hours")), minutes=int(match.group("minutes") or 0)
    )
    return timezone(-offset if match.group("sign") == "-" else offset)
