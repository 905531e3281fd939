"""Filtering, searching and sorting of a user's task list."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping

from pyuca import Collator

from app.task_fields import (
    STATUS_CANCELLED,
    TASK_STATUSES,
    day_string,
    normalize_text,
    offset_day_string,
    parse_timestamp,
    status_key,
    today_string,
)

ALL = "all"
VIEW_DEFAULT = "default"
VIEW_ALL = "all"
DUE_SPECIFIC = "specific"

SORT_NAME = "name"
SORT_STATUS = "status"
SORT_DUE_DATE = "dueDate"

_STATUS_ORDER = {status_key(status): rank for rank, status in enumerate(TASK_STATUSES)}
_UNKNOWN_STATUS_RANK = len(TASK_STATUSES)
_CANCELLED_KEY = status_key(STATUS_CANCELLED)


class DueBucket(str, Enum):
    PAST_DUE = "pastDue"
    DUE_TODAY = "dueToday"
    DUE_TOMORROW = "dueTomorrow"
    DUE_NEXT_WEEK = "dueNextWeek"
    LATER = "later"


_FILTER_BUCKETS = {
    bucket.value: bucket for bucket in DueBucket if bucket is not DueBucket.LATER
}


@dataclass(frozen=True)
class QueryParams:
    status: str = ALL
    priority: str = ALL
    due: str = ALL
    specific_due: str = ""
    sort: str = ""
    search: str = ""
    view: str = VIEW_DEFAULT

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "QueryParams":
        """Build params from request query values, defaulting empty ones."""

        def read(key: str, default: str) -> str:
            value = values.get(key)
            if value is None:
                return default
            value = str(value)
            return value if value.strip() else default

        return cls(
            status=read("status", ALL),
            priority=read("priority", ALL),
            due=read("due", ALL),
            specific_due=read("specificDue", ""),
            sort=read("sort", ""),
            search=read("search", ""),
            view=read("view", VIEW_DEFAULT),
        )

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["specificDue"] = data.pop("specific_due")
        return data


def classify_due_bucket(due_day: str | None, today: str) -> DueBucket | None:
    """Place a ``YYYY-MM-DD`` due day relative to ``today``."""
    if not due_day:
        return None
    tomorrow = offset_day_string(today, 1)
    next_week = offset_day_string(today, 7)
    if due_day < today:
        return DueBucket.PAST_DUE
    if due_day == today:
        return DueBucket.DUE_TODAY
    if due_day == tomorrow:
        return DueBucket.DUE_TOMORROW
    if due_day <= next_week:
        return DueBucket.DUE_NEXT_WEEK
    return DueBucket.LATER


def matches_due_filter(
    task: Mapping[str, Any],
    due: str,
    specific_due: str,
    today: str,
    tz: tzinfo = timezone.utc,
) -> bool:
    due_day = day_string(task.get("dueDate"), tz)
    if due_day is None:
        return False
    if due == DUE_SPECIFIC:
        return due_day == specific_due
    requested = _FILTER_BUCKETS.get(due)
    if requested is None:
        # unrecognized bucket names do not narrow the list
        return True
    return classify_due_bucket(due_day, today) is requested


@lru_cache(maxsize=1)
def _collator() -> Collator:
    # Built on first name sort.
    return Collator()


def _name_sort_key(task: Mapping[str, Any]) -> tuple[int, ...]:
    return _collator().sort_key(normalize_text(task.get("name")))


def _status_sort_key(task: Mapping[str, Any]) -> int:
    return _STATUS_ORDER.get(status_key(task.get("status")), _UNKNOWN_STATUS_RANK)


def _due_date_sort_key(tz: tzinfo) -> Callable[[Mapping[str, Any]], tuple[int, float]]:
    def key(task: Mapping[str, Any]) -> tuple[int, float]:
        due = parse_timestamp(task.get("dueDate"), tz)
        if due is None:
            return (1, 0.0)
        return (0, due.timestamp())

    return key


def _sort_key(sort: str, tz: tzinfo) -> Callable[[Mapping[str, Any]], Any] | None:
    if sort == SORT_NAME:
        return _name_sort_key
    if sort == SORT_STATUS:
        return _status_sort_key
    if sort == SORT_DUE_DATE:
        return _due_date_sort_key(tz)
    return None


def query(
    tasks: Iterable[Mapping[str, Any]],
    params: QueryParams,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> list[Mapping[str, Any]]:
    """Return the tasks to display, in display order.

    Stages run in a fixed order: view gate, status, priority, due bucket,
    search, then sort. The default view drops cancelled tasks before the
    status filter runs, so ``status=Cancelled`` only finds them under
    ``view=all``. The input collection is left untouched.
    """
    result = list(tasks)

    if params.view == VIEW_DEFAULT:
        result = [
            task for task in result if status_key(task.get("status")) != _CANCELLED_KEY
        ]

    if params.status != ALL:
        wanted = status_key(params.status)
        result = [task for task in result if status_key(task.get("status")) == wanted]

    if params.priority != ALL:
        wanted = normalize_text(params.priority)
        result = [
            task for task in result if normalize_text(task.get("priority")) == wanted
        ]

    if params.due != ALL:
        today = today_string(now, tz)
        result = [
            task
            for task in result
            if matches_due_filter(task, params.due, params.specific_due, today, tz)
        ]

    search = normalize_text(params.search)
    if search:
        result = [
            task for task in result if search in normalize_text(task.get("name"))
        ]

    sort_key = _sort_key(params.sort, tz)
    if sort_key is not None:
        result.sort(key=sort_key)

    return result


def annotate_due_buckets(
    tasks: Iterable[Mapping[str, Any]],
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> list[dict[str, Any]]:
    """Copy tasks with a ``dueBucket`` key used for highlighting."""
    today = today_string(now, tz)
    annotated: list[dict[str, Any]] = []
    for task in tasks:
        bucket = classify_due_bucket(day_string(task.get("dueDate"), tz), today)
        annotated.append({**task, "dueBucket": bucket.value if bucket else None})
    return annotated
