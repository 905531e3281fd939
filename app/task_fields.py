"""Shared normalization helpers for task fields.

Both the lifecycle validator and the query engine compare statuses,
priorities and due dates through these helpers so that case handling and
calendar-day conversion agree everywhere.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any

STATUS_PENDING = "Pending"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"
TASK_STATUSES = (
    STATUS_PENDING,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
)

DEFAULT_PRIORITY = "none"
# Suggested values only; stored priorities are free-form.
RECOMMENDED_PRIORITIES = ("High", "Medium", "Low", DEFAULT_PRIORITY)

_STATUS_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_text(value: Any) -> str:
    """Return the trimmed, case-folded form used for every text comparison."""
    if value is None:
        return ""
    return str(value).strip().casefold()


def status_key(value: Any) -> str:
    """Collapse a status to a comparison key ("In Progress" -> "inprogress")."""
    return _STATUS_SEPARATORS.sub("", normalize_text(value))


_CANONICAL_STATUSES = {status_key(status): status for status in TASK_STATUSES}


def canonical_status(value: Any) -> str | None:
    """Map user input to its canonical status, or None when unrecognized."""
    return _CANONICAL_STATUSES.get(status_key(value))


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_timestamp(value: Any, tz: tzinfo = timezone.utc) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Values without an offset are taken to be wall-clock time in ``tz``.
    Returns None for missing or unparsable input.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def ensure_aware(now: datetime, tz: tzinfo = timezone.utc) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now


def local_day(value: Any, tz: tzinfo = timezone.utc) -> date | None:
    parsed = parse_timestamp(value, tz)
    if parsed is None:
        return None
    try:
        return parsed.astimezone(tz).date()
    except (OverflowError, ValueError):
        # Moments at the edges of the datetime range cannot be shifted.
        return None


def day_string(value: Any, tz: tzinfo = timezone.utc) -> str | None:
    """Render a timestamp as a ``YYYY-MM-DD`` calendar day in ``tz``."""
    day = local_day(value, tz)
    return day.isoformat() if day is not None else None


def today_string(now: datetime, tz: tzinfo = timezone.utc) -> str:
    return ensure_aware(now, tz).astimezone(tz).date().isoformat()


def offset_day_string(today: str, days: int) -> str:
    return (date.fromisoformat(today) + timedelta(days=days)).isoformat()


def isoformat_utc(moment: datetime) -> str:
    """Serialize a moment the way stored timestamps are written."""
    return (
        ensure_aware(moment)
        .astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
