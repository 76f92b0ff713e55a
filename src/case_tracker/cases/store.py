# src/case_tracker/cases/store.py

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from ..core.ports import EventSink, KeyValueStorage
from . import snapshot
from .events import DomainEvent, EventAction, case_event, task_event, toggle_event
from .models import (
    Case,
    CaseFormData,
    CasePatch,
    Task,
    TaskFormData,
    TaskPatch,
    apply_case_patch,
    apply_task_patch,
    new_case,
    new_task,
    touch,
    utc_now,
)
from .snapshot import SnapshotFormatError

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "case-management-storage"
WEBHOOK_URL_KEY = "webhook-url"
SNAPSHOT_VERSION = 1

IMPORT_ERROR_MESSAGE = "Failed to import data. Invalid JSON format."


def _new_id() -> str:
    return str(uuid.uuid4())


class CaseStore:
    """
    Owner of the case collection (each case embeds its tasks).

    Lifecycle:
    - construct with a storage backend,
    - call load() once at startup,
    - every mutation persists the whole snapshot, then publishes a DomainEvent.

    Operations on unknown case/task ids are silent no-ops returning None.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        events: EventSink | None = None,
        default_webhook_url: str = "",
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._storage = storage
        self.events = events
        self._default_webhook_url = default_webhook_url or ""
        self._clock = clock
        self._new_id = id_factory
        self._cases: list[Case] = []
        self.error: str | None = None

    # ---- persistence ----

    def load(self) -> None:
        raw = self._storage.get_item(SNAPSHOT_KEY)
        if raw is None:
            self._cases = []
            logger.info("CaseStore: no snapshot yet, starting empty")
            return

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise SnapshotFormatError("snapshot is not an object")
            self._cases = snapshot.cases_from_list(data.get("cases"))
        except (json.JSONDecodeError, SnapshotFormatError):
            logger.exception("Failed to load case snapshot; keeping a copy and starting empty")
            self._storage.set_item(f"{SNAPSHOT_KEY}.corrupt", raw)
            self._cases = []
            return

        logger.info(
            "CaseStore loaded cases=%d tasks=%d",
            len(self._cases),
            sum(len(c.tasks) for c in self._cases),
        )

    def save(self) -> None:
        self._write(self._cases)

    def _write(self, cases: list[Case]) -> None:
        payload = {"version": SNAPSHOT_VERSION, "cases": snapshot.cases_to_list(cases)}
        self._storage.set_item(SNAPSHOT_KEY, json.dumps(payload, ensure_ascii=False))

    def _publish(self, event: DomainEvent) -> None:
        if self.events is None:
            return
        try:
            self.events.publish(event)
        except Exception:
            logger.exception("Event sink failed action=%s case_id=%s", event.action, event.case_id)

    def _commit(self, cases: list[Case], event: DomainEvent | None = None) -> None:
        # The collection only changes once the new snapshot is on disk.
        self._write(cases)
        self._cases = cases
        if event is not None:
            self._publish(event)

    # ---- lookup helpers ----

    def _index_of(self, case_id: str) -> int | None:
        for i, c in enumerate(self._cases):
            if c.id == case_id:
                return i
        return None

    @property
    def cases(self) -> tuple[Case, ...]:
        return tuple(self._cases)

    def get_case_by_id(self, case_id: str) -> Case | None:
        idx = self._index_of(case_id)
        return self._cases[idx] if idx is not None else None

    def _with_case(self, idx: int, case: Case) -> list[Case]:
        cases = list(self._cases)
        cases[idx] = case
        return cases

    # ---- case operations ----

    def add_case(self, data: CaseFormData) -> Case:
        now = self._clock()
        case = new_case(self._new_id(), data, now)
        self._commit([*self._cases, case], case_event(EventAction.CASE_CREATED, case, now))
        logger.debug("Case added id=%s number=%s", case.id, case.case_number)
        return case

    def update_case(self, case_id: str, patch: CasePatch) -> Case | None:
        idx = self._index_of(case_id)
        if idx is None:
            logger.debug("update_case: unknown id=%s", case_id)
            return None

        now = self._clock()
        updated = apply_case_patch(self._cases[idx], patch, now)
        self._commit(self._with_case(idx, updated), case_event(EventAction.CASE_UPDATED, updated, now))
        return updated

    def delete_case(self, case_id: str) -> Case | None:
        idx = self._index_of(case_id)
        if idx is None:
            logger.debug("delete_case: unknown id=%s", case_id)
            return None

        removed = self._cases[idx]
        remaining = [c for c in self._cases if c.id != case_id]
        self._commit(remaining, case_event(EventAction.CASE_DELETED, removed, self._clock()))
        logger.debug("Case deleted id=%s tasks=%d", removed.id, len(removed.tasks))
        return removed

    # ---- task operations ----

    def add_task(self, case_id: str, data: TaskFormData) -> Task | None:
        idx = self._index_of(case_id)
        if idx is None:
            logger.debug("add_task: unknown case id=%s", case_id)
            return None

        now = self._clock()
        case = self._cases[idx]
        task = new_task(self._new_id(), case.id, data, now)
        case = touch(case, (*case.tasks, task), now)
        self._commit(self._with_case(idx, case), task_event(EventAction.TASK_CREATED, case, task, now))
        logger.debug("Task added id=%s case_id=%s", task.id, case.id)
        return task

    def _replace_task(
        self, case_id: str, task_id: str, change: Callable[[Task], Task]
    ) -> tuple[list[Case], Case, Task] | None:
        """Build the collection with one task changed; nothing is committed."""
        idx = self._index_of(case_id)
        if idx is None:
            return None

        case = self._cases[idx]
        current = case.get_task(task_id)
        if current is None:
            return None

        changed = change(current)
        tasks = tuple(changed if t.id == task_id else t for t in case.tasks)
        case = touch(case, tasks, self._clock())
        return self._with_case(idx, case), case, changed

    def update_task(self, case_id: str, task_id: str, patch: TaskPatch) -> Task | None:
        result = self._replace_task(case_id, task_id, lambda t: apply_task_patch(t, patch))
        if result is None:
            logger.debug("update_task: unknown case_id=%s task_id=%s", case_id, task_id)
            return None

        cases, _, task = result
        self._commit(cases)
        return task

    def toggle_task_completion(self, case_id: str, task_id: str) -> Task | None:
        result = self._replace_task(
            case_id, task_id, lambda t: replace(t, completed=not t.completed)
        )
        if result is None:
            logger.debug("toggle_task_completion: unknown case_id=%s task_id=%s", case_id, task_id)
            return None

        cases, case, task = result
        self._commit(cases, toggle_event(case, task, case.updated_at))
        return task

    def delete_task(self, case_id: str, task_id: str) -> Task | None:
        idx = self._index_of(case_id)
        if idx is None:
            logger.debug("delete_task: unknown case id=%s", case_id)
            return None

        case = self._cases[idx]
        removed = case.get_task(task_id)
        # Parent timestamp is refreshed even when the task id is unknown.
        case = touch(case, tuple(t for t in case.tasks if t.id != task_id), self._clock())
        self._commit(self._with_case(idx, case))
        return removed

    # ---- export / import ----

    def export_data(self) -> str:
        return snapshot.dumps_cases(self._cases)

    def import_data(self, serialized: str) -> int:
        """
        Replace the whole collection with a serialized snapshot.

        Raises SnapshotFormatError (and records `error`) without touching the
        current collection if the document is not a valid case array. A
        storage failure propagates and also leaves the collection unchanged.
        """
        try:
            cases = snapshot.loads_cases(serialized)
        except SnapshotFormatError as e:
            logger.error("Failed to import data: %s", e)
            self.error = IMPORT_ERROR_MESSAGE
            raise

        self._commit(cases)
        self.error = None
        logger.info("Imported cases=%d", len(cases))
        return len(cases)

    # ---- webhook configuration ----

    def set_webhook_url(self, url: str) -> None:
        url = (url or "").strip()
        if url:
            self._storage.set_item(WEBHOOK_URL_KEY, url)
        else:
            self._storage.remove_item(WEBHOOK_URL_KEY)
        logger.info("Webhook URL %s", "set" if url else "cleared")

    def get_webhook_url(self) -> str:
        stored = self._storage.get_item(WEBHOOK_URL_KEY)
        if stored and stored.strip():
            return stored.strip()
        return self._default_webhook_url
