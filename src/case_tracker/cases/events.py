# src/case_tracker/cases/events.py

from __future__ import annotations

"""
Domain events emitted by CaseStore mutations.

The store only builds and publishes events; delivery (webhook POSTs) is the
job of whatever EventSink is wired in by the composition root.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .models import Case, Task


class EventAction(StrEnum):
    CASE_CREATED = "case_created"
    CASE_UPDATED = "case_updated"
    CASE_DELETED = "case_deleted"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    TASK_REOPENED = "task_reopened"
    TEST_WEBHOOK = "test_webhook"


def iso_utc(ts: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class DomainEvent:
    action: EventAction
    timestamp: datetime
    case_id: str | None = None
    case_number: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"action": self.action.value}
        if self.case_id is not None:
            payload["caseId"] = self.case_id
        if self.case_number is not None:
            payload["caseNumber"] = self.case_number
        payload.update(self.fields)
        payload["timestamp"] = iso_utc(self.timestamp)
        return payload


def case_event(action: EventAction, case: Case, now: datetime) -> DomainEvent:
    return DomainEvent(
        action=action,
        timestamp=now,
        case_id=case.id,
        case_number=case.case_number,
        fields={"clientName": case.client_name},
    )


def task_event(action: EventAction, case: Case, task: Task, now: datetime) -> DomainEvent:
    return DomainEvent(
        action=action,
        timestamp=now,
        case_id=case.id,
        case_number=case.case_number,
        fields={"taskId": task.id, "taskTitle": task.title},
    )


def toggle_event(case: Case, task: Task, now: datetime) -> DomainEvent:
    """Event for a task whose `completed` flag has just been flipped."""
    action = EventAction.TASK_COMPLETED if task.completed else EventAction.TASK_REOPENED
    return task_event(action, case, task, now)


def webhook_test_event(app_name: str, now: datetime) -> DomainEvent:
    return DomainEvent(
        action=EventAction.TEST_WEBHOOK,
        timestamp=now,
        fields={"message": f"This is a test from {app_name}"},
    )
