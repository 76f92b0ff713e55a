# src/case_tracker/cases/snapshot.py

"""
Snapshot codec: case collection <-> JSON-compatible object graph.

Wire shape (also the export file shape) is a JSON array of cases with
camelCase keys; each case embeds its tasks. Calendar dates are written as
"YYYY-MM-DD", timestamps as ISO-8601 UTC.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from .models import Case, CaseStatus, Task, parse_date, parse_optional_date, parse_timestamp

logger = logging.getLogger(__name__)

EXPORT_FILENAME_PREFIX = "case-tracker-export"


class SnapshotFormatError(ValueError):
    """The serialized snapshot is not a valid case collection."""


def _date_str(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _ts_str(ts: datetime) -> str:
    # Full precision so timestamps survive export -> import unchanged.
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def task_to_dict(task: Task) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": task.id,
        "caseId": task.case_id,
        "title": task.title,
        "completed": task.completed,
        "createdAt": _ts_str(task.created_at),
    }
    if task.description is not None:
        out["description"] = task.description
    if task.due_date is not None:
        out["dueDate"] = _date_str(task.due_date)
    return out


def case_to_dict(case: Case) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": case.id,
        "caseNumber": case.case_number,
        "courtCaseNumber": case.court_case_number,
        "description": case.description,
        "clientName": case.client_name,
        "openDate": _date_str(case.open_date),
        "opponent": case.opponent,
        "status": case.status.value,
        "tasks": [task_to_dict(t) for t in case.tasks],
        "createdAt": _ts_str(case.created_at),
        "updatedAt": _ts_str(case.updated_at),
    }
    if case.next_hearing_date is not None:
        out["nextHearingDate"] = _date_str(case.next_hearing_date)
    return out


def cases_to_list(cases: Iterable[Case]) -> list[dict[str, Any]]:
    return [case_to_dict(c) for c in cases]


def dumps_cases(cases: Iterable[Case]) -> str:
    return json.dumps(cases_to_list(cases), ensure_ascii=False, indent=2)


# ---- decoding ----


def _field(obj: dict[str, Any], key: str, where: str) -> Any:
    if key not in obj or obj[key] is None:
        raise SnapshotFormatError(f"{where}: missing field {key!r}")
    return obj[key]


def _str_field(obj: dict[str, Any], key: str, where: str) -> str:
    return str(_field(obj, key, where))


def task_from_dict(raw: Any, *, case_id: str, where: str) -> Task:
    if not isinstance(raw, dict):
        raise SnapshotFormatError(f"{where}: task is not an object")

    owner = raw.get("caseId") or case_id
    if owner != case_id:
        raise SnapshotFormatError(
            f"{where}: task caseId {owner!r} does not match containing case {case_id!r}"
        )

    title = _str_field(raw, "title", where).strip()
    if not title:
        raise SnapshotFormatError(f"{where}: task title is empty")

    completed = raw.get("completed", False)
    if not isinstance(completed, bool):
        raise SnapshotFormatError(f"{where}: completed must be true or false, got {completed!r}")

    description = raw.get("description")
    try:
        return Task(
            id=_str_field(raw, "id", where),
            case_id=case_id,
            title=title,
            description=str(description) if description is not None else None,
            due_date=parse_optional_date(raw.get("dueDate")),
            completed=completed,
            created_at=parse_timestamp(_field(raw, "createdAt", where)),
        )
    except ValueError as e:
        if isinstance(e, SnapshotFormatError):
            raise
        raise SnapshotFormatError(f"{where}: {e}") from e


def case_from_dict(raw: Any, *, where: str) -> Case:
    if not isinstance(raw, dict):
        raise SnapshotFormatError(f"{where}: case is not an object")

    case_id = _str_field(raw, "id", where)
    raw_tasks = raw.get("tasks") or []
    if not isinstance(raw_tasks, list):
        raise SnapshotFormatError(f"{where}: tasks is not an array")

    tasks = tuple(
        task_from_dict(t, case_id=case_id, where=f"{where}.tasks[{j}]")
        for j, t in enumerate(raw_tasks)
    )
    task_ids = [t.id for t in tasks]
    if len(set(task_ids)) != len(task_ids):
        dup = next(i for i in task_ids if task_ids.count(i) > 1)
        raise SnapshotFormatError(f"{where}: duplicate task id {dup!r}")

    try:
        return Case(
            id=case_id,
            case_number=_str_field(raw, "caseNumber", where),
            court_case_number=_str_field(raw, "courtCaseNumber", where),
            description=str(raw.get("description") or ""),
            client_name=_str_field(raw, "clientName", where),
            open_date=parse_date(_field(raw, "openDate", where)),
            opponent=str(raw.get("opponent") or ""),
            status=CaseStatus.parse(_field(raw, "status", where)),
            next_hearing_date=parse_optional_date(raw.get("nextHearingDate")),
            tasks=tasks,
            created_at=parse_timestamp(_field(raw, "createdAt", where)),
            updated_at=parse_timestamp(_field(raw, "updatedAt", where)),
        )
    except ValueError as e:
        if isinstance(e, SnapshotFormatError):
            raise
        raise SnapshotFormatError(f"{where}: {e}") from e


def cases_from_list(data: Any) -> list[Case]:
    if not isinstance(data, list):
        raise SnapshotFormatError("Imported data is not an array")

    cases = [case_from_dict(c, where=f"cases[{i}]") for i, c in enumerate(data)]

    seen: set[str] = set()
    for c in cases:
        if c.id in seen:
            raise SnapshotFormatError(f"duplicate case id {c.id!r}")
        seen.add(c.id)
    return cases


def loads_cases(serialized: str) -> list[Case]:
    try:
        data = json.loads(serialized)
    except (TypeError, json.JSONDecodeError) as e:
        raise SnapshotFormatError(f"Invalid JSON: {e}") from e
    return cases_from_list(data)


# ---- files ----


def export_filename(today: date) -> str:
    return f"{EXPORT_FILENAME_PREFIX}-{today.isoformat()}.json"


def export_to_file(store: Any, directory: str | Path, today: date | None = None) -> Path:
    """Write store.export_data() to <directory>/case-tracker-export-YYYY-MM-DD.json."""
    if today is None:
        today = date.today()
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(today)
    path.write_text(store.export_data(), "utf-8")
    logger.info("Exported %d cases to %s", len(store.cases), path)
    return path


def import_from_file(store: Any, path: str | Path) -> int:
    """Replace the store's collection with the file's contents. Returns the case count."""
    path = Path(path)
    try:
        text = path.read_text("utf-8")
    except UnicodeDecodeError as e:
        raise SnapshotFormatError(f"{path}: not a UTF-8 text file") from e
    store.import_data(text)
    logger.info("Imported %d cases from %s", len(store.cases), path)
    return len(store.cases)
