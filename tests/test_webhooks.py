# tests/test_webhooks.py

from __future__ import annotations

import json
import logging

import httpx
import pytest

from case_tracker.cases.events import EventAction, case_event, iso_utc
from case_tracker.cases.models import TaskFormData, TaskPatch
from case_tracker.cases.store import CaseStore
from case_tracker.webhooks.dispatcher import WebhookDispatcher, WebhookError, deliver

from .fakes import MemoryStorage, StepClock, case_form, make_case

HOOK = "https://hooks.example.com/case-tracker"


def _recording_transport(bodies: list[dict], status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(status, text="ok")

    return httpx.MockTransport(handler)


def _failing_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


def test_event_payload_shape(clock) -> None:
    case = make_case("case-1", case_number="C-1", client_name="Acme Ltd")
    event = case_event(EventAction.CASE_CREATED, case, clock())

    assert event.to_payload() == {
        "action": "case_created",
        "caseId": "case-1",
        "caseNumber": "C-1",
        "clientName": "Acme Ltd",
        "timestamp": "2024-06-10T09:00:00.000Z",
    }


def test_iso_utc_truncates_to_milliseconds(clock) -> None:
    ts = clock().replace(microsecond=123456)
    assert iso_utc(ts) == "2024-06-10T09:00:00.123Z"


@pytest.mark.asyncio
async def test_deliver_posts_json_and_ignores_status() -> None:
    bodies: list[dict] = []
    async with httpx.AsyncClient(transport=_recording_transport(bodies, status=500)) as client:
        ok = await deliver(client, HOOK, {"action": "case_created"})

    assert ok is True
    assert bodies == [{"action": "case_created"}]


@pytest.mark.asyncio
async def test_deliver_logs_and_swallows_transport_errors(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="case_tracker.webhooks")
    async with httpx.AsyncClient(transport=_failing_transport()) as client:
        ok = await deliver(client, HOOK, {"action": "case_deleted"})

    assert ok is False
    assert "Failed to trigger webhook" in caplog.text


def test_dispatcher_delivers_store_events_in_order() -> None:
    bodies: list[dict] = []
    storage = MemoryStorage()
    store = CaseStore(storage, default_webhook_url=HOOK, clock=StepClock())
    dispatcher = WebhookDispatcher(store.get_webhook_url, transport=_recording_transport(bodies))
    store.events = dispatcher
    store.load()

    dispatcher.start()
    try:
        case = store.add_case(case_form())
        task = store.add_task(case.id, TaskFormData(title="File motion"))
        store.update_task(case.id, task.id, TaskPatch(title="File amended motion"))
        store.toggle_task_completion(case.id, task.id)
        store.delete_case(case.id)
        assert dispatcher.flush(timeout=5.0)
    finally:
        dispatcher.stop(timeout=5.0)

    assert [b["action"] for b in bodies] == [
        "case_created",
        "task_created",
        "task_completed",
        "case_deleted",
    ]
    assert bodies[1]["taskTitle"] == "File motion"
    assert bodies[2]["taskTitle"] == "File amended motion"
    assert all(b["caseId"] == case.id for b in bodies)
    assert not dispatcher.running


def test_dispatcher_survives_unreachable_endpoint() -> None:
    store = CaseStore(MemoryStorage(), default_webhook_url=HOOK)
    dispatcher = WebhookDispatcher(store.get_webhook_url, transport=_failing_transport())
    store.events = dispatcher

    dispatcher.start()
    try:
        case = store.add_case(case_form())
        assert dispatcher.flush(timeout=5.0)
    finally:
        dispatcher.stop(timeout=5.0)

    assert store.get_case_by_id(case.id) == case


def test_no_url_means_no_request() -> None:
    bodies: list[dict] = []
    store = CaseStore(MemoryStorage())
    dispatcher = WebhookDispatcher(store.get_webhook_url, transport=_recording_transport(bodies))
    store.events = dispatcher

    dispatcher.start()
    try:
        store.add_case(case_form())
        assert dispatcher.flush(timeout=5.0)
    finally:
        dispatcher.stop(timeout=5.0)

    assert bodies == []


def test_disabled_dispatcher_sends_nothing() -> None:
    bodies: list[dict] = []
    dispatcher = WebhookDispatcher(
        lambda: HOOK, enabled=False, transport=_recording_transport(bodies)
    )
    dispatcher.start()
    try:
        dispatcher.publish(case_event(EventAction.CASE_CREATED, make_case("1"), StepClock()()))
        assert dispatcher.flush(timeout=5.0)
    finally:
        dispatcher.stop(timeout=5.0)

    assert bodies == []


def test_publish_before_start_is_dropped() -> None:
    bodies: list[dict] = []
    dispatcher = WebhookDispatcher(lambda: HOOK, transport=_recording_transport(bodies))

    dispatcher.publish(case_event(EventAction.CASE_UPDATED, make_case("1"), StepClock()()))

    assert dispatcher.flush() is True
    assert bodies == []


def test_send_test_posts_test_action() -> None:
    bodies: list[dict] = []
    dispatcher = WebhookDispatcher(
        lambda: HOOK, app_name="Lawfirm Tracker", transport=_recording_transport(bodies)
    )

    payload = dispatcher.send_test()

    assert bodies == [payload]
    assert payload["action"] == "test_webhook"
    assert payload["message"] == "This is a test from Lawfirm Tracker"
    assert payload["timestamp"].endswith("Z")
    assert "caseId" not in payload


def test_send_test_uses_explicit_url() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(204)

    dispatcher = WebhookDispatcher(lambda: "", transport=httpx.MockTransport(handler))
    dispatcher.send_test("https://other.example.com/hook")

    assert seen == ["https://other.example.com/hook"]


def test_send_test_without_url_raises() -> None:
    dispatcher = WebhookDispatcher(lambda: "   ")
    with pytest.raises(WebhookError, match="No webhook URL"):
        dispatcher.send_test()


def test_send_test_reports_transport_failure() -> None:
    dispatcher = WebhookDispatcher(lambda: HOOK, transport=_failing_transport())
    with pytest.raises(WebhookError, match="Failed to reach webhook"):
        dispatcher.send_test()
