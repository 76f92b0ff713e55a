# src/case_tracker/views/aggregates.py

"""Dashboard and report aggregations over the case collection."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

from ..cases.models import Case, CaseStatus, Task

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


# ---- status / completion ----


def status_counts(cases: Iterable[Case]) -> dict[CaseStatus, int]:
    """Cases per status, in enumeration order, zero counts excluded."""
    counts = {s: 0 for s in CaseStatus}
    for c in cases:
        counts[c.status] += 1
    return {s: n for s, n in counts.items() if n > 0}


def status_chart(cases: Iterable[Case]) -> list[tuple[str, int]]:
    return [(s.label, n) for s, n in status_counts(cases).items()]


@dataclass(frozen=True, slots=True)
class TaskCompletion:
    total: int
    completed: int

    @property
    def pending(self) -> int:
        return self.total - self.completed

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0

    @property
    def percent(self) -> int:
        # Half-up, not banker's rounding.
        return int(self.ratio * 100 + 0.5)


def task_completion(cases: Iterable[Case]) -> TaskCompletion:
    total = 0
    completed = 0
    for c in cases:
        total += len(c.tasks)
        completed += sum(1 for t in c.tasks if t.completed)
    return TaskCompletion(total=total, completed=completed)


def active_case_count(cases: Iterable[Case]) -> int:
    return sum(1 for c in cases if not c.status.is_terminal)


def outcome_breakdown(cases: Iterable[Case]) -> dict[str, int]:
    """Won / Lost / Settled / Closed counts, zero counts excluded."""
    counts = status_counts(c for c in cases if c.status.is_terminal)
    out = {
        "Won": counts.get(CaseStatus.WON, 0),
        "Lost": counts.get(CaseStatus.LOST, 0),
        "Settled": counts.get(CaseStatus.SETTLED, 0),
        "Closed": counts.get(CaseStatus.CLOSED, 0),
    }
    return {k: v for k, v in out.items() if v > 0}


def task_status_breakdown(cases: Iterable[Case]) -> dict[str, int]:
    tc = task_completion(cases)
    out = {"Completed": tc.completed, "Pending": tc.pending}
    return {k: v for k, v in out.items() if v > 0}


# ---- case lists ----


def upcoming_hearings(cases: Iterable[Case], today: date | None = None, limit: int = 5) -> list[Case]:
    """Cases with a hearing strictly after today, soonest first."""
    if today is None:
        today = date.today()
    upcoming = [c for c in cases if c.next_hearing_date is not None and c.next_hearing_date > today]
    upcoming.sort(key=lambda c: c.next_hearing_date or date.max)
    return upcoming[: max(0, int(limit))]


def recent_cases(cases: Iterable[Case], limit: int = 5) -> list[Case]:
    return sorted(cases, key=lambda c: c.open_date, reverse=True)[: max(0, int(limit))]


def search_cases(
    cases: Iterable[Case], query: str = "", status: CaseStatus | str | None = None
) -> list[Case]:
    """
    Case list filter: case-insensitive substring match over case number,
    court case number, client name, description and opponent; optional
    status filter ("all" or None disables it). Newest open date first.
    """
    q = (query or "").strip().lower()
    wanted = None if status in (None, "", "all") else CaseStatus.parse(status)

    out: list[Case] = []
    for c in cases:
        if wanted is not None and c.status != wanted:
            continue
        if q:
            haystack = (c.case_number, c.court_case_number, c.client_name, c.description, c.opponent)
            if not any(q in s.lower() for s in haystack):
                continue
        out.append(c)

    out.sort(key=lambda c: c.open_date, reverse=True)
    return out


def cases_opened_by_month(
    cases: Iterable[Case], today: date | None = None, months: int = 6
) -> list[tuple[str, int]]:
    """
    Cases opened per calendar month over the last `months` months
    (current month included), oldest first, labelled like "Jun 2024".
    """
    if today is None:
        today = date.today()
    months = max(1, int(months))

    keys: list[tuple[int, int]] = []
    y, m = today.year, today.month
    for _ in range(months):
        keys.append((y, m))
        m -= 1
        if m == 0:
            y, m = y - 1, 12
    keys.reverse()

    counts = {k: 0 for k in keys}
    for c in cases:
        k = (c.open_date.year, c.open_date.month)
        if k in counts:
            counts[k] += 1

    return [(f"{_MONTH_ABBR[m - 1]} {y}", counts[(y, m)]) for (y, m) in keys]


# ---- task lists ----


@dataclass(frozen=True, slots=True)
class TaskWithCase:
    task: Task
    client_name: str
    case_number: str

    @property
    def case_id(self) -> str:
        return self.task.case_id


def all_tasks(cases: Iterable[Case]) -> list[TaskWithCase]:
    return [
        TaskWithCase(task=t, client_name=c.client_name, case_number=c.case_number)
        for c in cases
        for t in c.tasks
    ]


class CompletionFilter(StrEnum):
    ALL = "all"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"


class TaskSort(StrEnum):
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    CASE = "case"
    TITLE = "title"


def filter_tasks(
    rows: Iterable[TaskWithCase],
    query: str = "",
    completed: CompletionFilter | str = CompletionFilter.ALL,
) -> list[TaskWithCase]:
    q = (query or "").strip().lower()
    mode = CompletionFilter(completed)

    out: list[TaskWithCase] = []
    for r in rows:
        t = r.task
        if mode is CompletionFilter.COMPLETED and not t.completed:
            continue
        if mode is CompletionFilter.INCOMPLETE and t.completed:
            continue
        if q:
            haystack = (t.title, t.description or "", r.client_name, r.case_number)
            if not any(q in s.lower() for s in haystack):
                continue
        out.append(r)
    return out


def _created(r: TaskWithCase) -> datetime:
    return r.task.created_at


def sort_task_rows(
    rows: Sequence[TaskWithCase], by: TaskSort | str = TaskSort.DUE_DATE
) -> list[TaskWithCase]:
    mode = TaskSort(by)
    if mode is TaskSort.DUE_DATE:
        return sorted(
            rows,
            key=lambda r: (r.task.due_date is None, r.task.due_date or date.max, _created(r)),
        )
    if mode is TaskSort.CREATED_AT:
        return sorted(rows, key=_created)
    if mode is TaskSort.CASE:
        return sorted(rows, key=lambda r: r.client_name.casefold())
    return sorted(rows, key=lambda r: r.task.title.casefold())
