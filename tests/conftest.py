# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest

from case_tracker.cases.store import CaseStore
from case_tracker.cli.bootstrap import create_initial_state
from case_tracker.core.state import AppState

from .fakes import MemoryStorage, RecordingSink, StepClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="case-tracker-test",
        log_level="DEBUG",
        data_dir=data_dir,
        storage_dir=data_dir / "storage",
        export_dir=data_dir / "exports",
        webhook_enabled=True,
        webhook_url="",
        webhook_timeout_seconds=2.0,
    )


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def store(storage: MemoryStorage, sink: RecordingSink, clock: StepClock) -> CaseStore:
    """Loaded CaseStore over in-memory storage, recording every event."""
    s = CaseStore(storage, events=sink, clock=clock)
    s.load()
    return s


@pytest.fixture()
def sent_requests() -> list[httpx.Request]:
    return []


@pytest.fixture()
def state(settings: SimpleNamespace, sent_requests: list[httpx.Request]) -> AppState:
    """
    AppState wired by the real composition root, with HTTP mocked.

    The dispatcher is not started; tests that need delivery start it.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        sent_requests.append(request)
        return httpx.Response(200)

    st = create_initial_state(settings=settings, transport=httpx.MockTransport(handler))
    st.store.load()
    return st
