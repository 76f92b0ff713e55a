# src/case_tracker/cases/models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import StrEnum


class CaseStatus(StrEnum):
    """
    Case status label.

    Free-form: any status may be changed to any other status.
    """

    NEW = "new"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    AWAITING_RESPONSE = "awaiting_response"
    AWAITING_HEARING = "awaiting_hearing"
    CLOSED = "closed"
    WON = "won"
    LOST = "lost"
    SETTLED = "settled"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ", 1)

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, raw: str | CaseStatus) -> CaseStatus:
        try:
            return cls(str(raw).strip())
        except ValueError:
            raise ValueError(f"Unknown case status: {raw!r}") from None


TERMINAL_STATUSES = frozenset(
    {CaseStatus.CLOSED, CaseStatus.WON, CaseStatus.LOST, CaseStatus.SETTLED}
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(raw: str | date) -> date:
    """
    Parse a calendar date.

    Accepts "YYYY-MM-DD" (form input) as well as full ISO timestamps such as
    "2024-06-10T00:00:00.000Z", which older exports used for every date.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        raise ValueError("date is empty")
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        return datetime.fromisoformat(s).date()
    except ValueError:
        raise ValueError(f"Invalid date: {raw!r} (expected YYYY-MM-DD)") from None


def parse_optional_date(raw: str | date | None) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    return parse_date(raw)


def parse_timestamp(raw: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(raw, datetime):
        ts = raw
    else:
        try:
            ts = datetime.fromisoformat(str(raw).strip())
        except ValueError:
            raise ValueError(f"Invalid timestamp: {raw!r}") from None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    case_id: str
    title: str
    created_at: datetime
    description: str | None = None
    due_date: date | None = None
    completed: bool = False


@dataclass(frozen=True, slots=True)
class Case:
    id: str
    case_number: str
    court_case_number: str
    description: str
    client_name: str
    open_date: date
    opponent: str
    status: CaseStatus
    created_at: datetime
    updated_at: datetime
    next_hearing_date: date | None = None
    tasks: tuple[Task, ...] = ()

    def get_task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None


# ---- form input ----


def _required(value: str | None, name: str) -> str:
    s = (value or "").strip()
    if not s:
        raise ValueError(f"{name} is required")
    return s


@dataclass(frozen=True, slots=True)
class CaseFormData:
    """Case creation input. Dates are "YYYY-MM-DD" strings."""

    case_number: str
    court_case_number: str
    description: str
    client_name: str
    open_date: str
    opponent: str
    status: CaseStatus | str
    next_hearing_date: str | None = None

    def validate(self) -> None:
        _required(self.case_number, "case_number")
        _required(self.court_case_number, "court_case_number")
        _required(self.description, "description")
        _required(self.client_name, "client_name")
        _required(self.open_date, "open_date")
        _required(self.opponent, "opponent")
        CaseStatus.parse(self.status)
        parse_date(self.open_date)
        parse_optional_date(self.next_hearing_date)


@dataclass(frozen=True, slots=True)
class TaskFormData:
    title: str
    description: str | None = None
    due_date: str | None = None

    def validate(self) -> None:
        _required(self.title, "title")
        parse_optional_date(self.due_date)


def new_case(case_id: str, data: CaseFormData, now: datetime) -> Case:
    data.validate()
    return Case(
        id=case_id,
        case_number=data.case_number.strip(),
        court_case_number=data.court_case_number.strip(),
        description=data.description.strip(),
        client_name=data.client_name.strip(),
        open_date=parse_date(data.open_date),
        opponent=data.opponent.strip(),
        status=CaseStatus.parse(data.status),
        next_hearing_date=parse_optional_date(data.next_hearing_date),
        tasks=(),
        created_at=now,
        updated_at=now,
    )


def new_task(task_id: str, case_id: str, data: TaskFormData, now: datetime) -> Task:
    data.validate()
    return Task(
        id=task_id,
        case_id=case_id,
        title=data.title.strip(),
        description=(data.description or None),
        due_date=parse_optional_date(data.due_date),
        completed=False,
        created_at=now,
    )


# ---- partial updates ----


@dataclass(frozen=True, slots=True)
class CasePatch:
    """Partial case update. None means "leave unchanged"."""

    case_number: str | None = None
    court_case_number: str | None = None
    description: str | None = None
    client_name: str | None = None
    open_date: str | None = None
    opponent: str | None = None
    status: CaseStatus | str | None = None
    next_hearing_date: str | None = None


@dataclass(frozen=True, slots=True)
class TaskPatch:
    title: str | None = None
    description: str | None = None
    due_date: str | None = None


def apply_case_patch(case: Case, patch: CasePatch, now: datetime) -> Case:
    """Return `case` with the provided fields merged in; updated_at is always refreshed."""
    changes: dict[str, object] = {"updated_at": now}

    for name in ("case_number", "court_case_number", "description", "client_name", "opponent"):
        value = getattr(patch, name)
        if value is not None:
            changes[name] = _required(value, name)

    if patch.status is not None:
        changes["status"] = CaseStatus.parse(patch.status)

    # Empty date strings come from cleared form fields: keep the stored value.
    if patch.open_date:
        changes["open_date"] = parse_date(patch.open_date)
    if patch.next_hearing_date:
        changes["next_hearing_date"] = parse_date(patch.next_hearing_date)

    return replace(case, **changes)


def apply_task_patch(task: Task, patch: TaskPatch) -> Task:
    changes: dict[str, object] = {}

    if patch.title is not None:
        changes["title"] = _required(patch.title, "title")
    if patch.description is not None:
        changes["description"] = patch.description or None
    if patch.due_date:
        changes["due_date"] = parse_date(patch.due_date)

    return replace(task, **changes) if changes else task


def touch(case: Case, tasks: tuple[Task, ...], now: datetime) -> Case:
    """Replace the task collection and refresh updated_at."""
    return replace(case, tasks=tasks, updated_at=now)
