# src/case_tracker/views/due_dates.py

"""
Due-date bucketing and default ordering for task lists.

Comparison is by local calendar day; tasks carry plain dates so there is no
time-of-day to truncate.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from enum import StrEnum
from typing import TypeVar

from ..cases.models import Task


class DueBucket(StrEnum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    LATER = "later"
    NO_DUE_DATE = "no_due_date"

    @property
    def heading(self) -> str:
        return _BUCKET_HEADINGS[self]


_BUCKET_HEADINGS = {
    DueBucket.OVERDUE: "Overdue",
    DueBucket.TODAY: "Today",
    DueBucket.TOMORROW: "Tomorrow",
    DueBucket.THIS_WEEK: "This week",
    DueBucket.LATER: "Later",
    DueBucket.NO_DUE_DATE: "No due date",
}


def end_of_week(today: date) -> date:
    """
    Last day of the current week (Sunday).

    On a Sunday this is the following Sunday: weeks are counted Sunday=0..Saturday=6
    and the boundary is today + (7 - day).
    """
    day = (today.weekday() + 1) % 7
    return today + timedelta(days=7 - day)


def due_bucket(task: Task, today: date | None = None) -> DueBucket:
    if today is None:
        today = date.today()

    due = task.due_date
    if due is None:
        return DueBucket.NO_DUE_DATE

    tomorrow = today + timedelta(days=1)

    # A completed task is never overdue; it falls through to the date checks.
    if due < today and not task.completed:
        return DueBucket.OVERDUE
    if due == today:
        return DueBucket.TODAY
    if due == tomorrow:
        return DueBucket.TOMORROW
    if tomorrow < due <= end_of_week(today):
        return DueBucket.THIS_WEEK
    return DueBucket.LATER


T = TypeVar("T")


def group_by_due(
    items: Iterable[T], task_of=lambda x: x, today: date | None = None
) -> dict[DueBucket, list[T]]:
    """Group items into every bucket (empty buckets included), preserving input order."""
    if today is None:
        today = date.today()
    groups: dict[DueBucket, list[T]] = {b: [] for b in DueBucket}
    for item in items:
        groups[due_bucket(task_of(item), today)].append(item)
    return groups


def group_tasks_by_due(tasks: Iterable[Task], today: date | None = None) -> dict[DueBucket, list[Task]]:
    return group_by_due(tasks, today=today)


def task_sort_key(task: Task) -> tuple:
    return (
        task.completed,
        task.due_date is None,
        task.due_date or date.max,
        task.created_at,
    )


def sort_tasks(tasks: Sequence[Task]) -> list[Task]:
    """Incomplete first, then by due date (dated before undated), then by creation time."""
    return sorted(tasks, key=task_sort_key)
