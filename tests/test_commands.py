# tests/test_commands.py

from __future__ import annotations

import json
from pathlib import Path

from case_tracker.cli.bootstrap import close_session, create_initial_state, open_session
from case_tracker.cli.commands import CommandRegistry
from case_tracker.cli.console import run_command

NEW_CASE = (
    '/case new number=C-2024-001 court=CV-77/2024 client="Acme Ltd" '
    'opponent="Globex Corp" opened=2024-06-01 description="Breach of supply contract"'
)


def test_registry_routes_to_2_and_3_param_handlers() -> None:
    reg = CommandRegistry()
    emitted: list[str] = []

    def two(state, args):
        return f"two:{args}"

    def three(state, args, emit):
        emit("progress")
        return "three"

    reg.register("two", two, help_text="2-param", aliases=["2"])
    reg.register("three", three, help_text="3-param")

    assert reg.handle(None, "/two a 'b c'") == "two:['a', 'b c']"  # type: ignore[arg-type]
    assert reg.handle(None, "/2") == "two:[]"  # type: ignore[arg-type]
    assert reg.handle(None, "/THREE", emit=emitted.append) == "three"  # type: ignore[arg-type]
    assert emitted == ["progress"]


def test_registry_non_commands_and_errors() -> None:
    reg = CommandRegistry()
    reg.register("ping", lambda state, args: "pong", help_text="Ping.")

    assert reg.handle(None, "hello") is None  # type: ignore[arg-type]
    assert reg.handle(None, "/nope").startswith("Unknown command: /nope")  # type: ignore[arg-type,union-attr]
    assert reg.handle(None, "/").startswith("Empty command")  # type: ignore[arg-type,union-attr]
    assert reg.handle(None, '/ping "unterminated').startswith("Cannot parse command")  # type: ignore[arg-type,union-attr]
    assert "/ping - Ping." in reg.build_help()


def test_help_lists_commands(state) -> None:
    reply = run_command(state, "/help")
    for name in ("/stats", "/cases", "/case", "/tasks", "/task", "/report", "/export", "/import", "/webhook"):
        assert name in reply
    assert run_command(state, "/?") == reply


def test_non_command_input_gets_a_hint(state) -> None:
    assert run_command(state, "hello").startswith("Commands start with '/'")


def test_case_lifecycle_through_console(state) -> None:
    assert run_command(state, "/cases") == "No cases yet. Use /case new to add one."

    reply = run_command(state, NEW_CASE)
    assert reply.startswith("Case created:")
    [case] = state.store.cases
    assert case.client_name == "Acme Ltd"

    assert "C-2024-001" in run_command(state, "/cases acme")
    assert run_command(state, "/cases zzz") == "No cases match your search criteria."

    reply = run_command(state, f"/case edit {case.id[:8]} status=awaiting_hearing hearing=2024-07-01")
    assert reply.startswith("Case updated:")
    assert "[awaiting hearing]" in reply

    details = run_command(state, f"/case {case.id}")
    assert "Next hearing: 2024-07-01" in details
    assert "Tasks (0):" in details

    assert run_command(state, f"/case delete {case.id}") == "Case deleted: C-2024-001 (0 tasks removed)"
    assert state.store.cases == ()
    assert run_command(state, f"/case {case.id}") == f"Case not found: {case.id}"


def test_task_commands_and_stats(state) -> None:
    run_command(state, NEW_CASE)
    [case] = state.store.cases
    ref = case.id[:8]

    reply = run_command(state, f"/task new {ref} title='Draft reply' due=2024-06-20")
    assert reply.startswith("Task added:")
    [task] = state.store.get_case_by_id(case.id).tasks

    assert "Tasks: 0/1 completed (0%)" in run_command(state, "/stats")

    reply = run_command(state, f"/task done {ref} {task.id[:8]}")
    assert reply.startswith("Task completed:")
    assert "[x]" in reply
    assert "Tasks: 1/1 completed (100%)" in run_command(state, "/stats")

    listing = run_command(state, "/tasks filter=completed")
    assert "Draft reply" in listing
    assert "Acme Ltd" in listing
    assert run_command(state, "/tasks filter=incomplete") == "No tasks match your search criteria."

    reply = run_command(state, f"/task edit {ref} {task.id} title='Draft final reply'")
    assert reply.startswith("Task updated:")

    assert run_command(state, f"/task delete {ref} {task.id}") == "Task deleted: Draft final reply"
    assert run_command(state, "/tasks").startswith("No tasks yet.")


def test_invalid_input_is_reported(state) -> None:
    reply = run_command(state, "/case new number=C-1")
    assert reply.startswith("Invalid input:")
    assert state.store.cases == ()

    run_command(state, NEW_CASE)
    [case] = state.store.cases
    assert run_command(state, f"/case edit {case.id} colour=red").startswith("Invalid input: Unknown field")
    assert run_command(state, f"/task new {case.id} due=2024-06-20").startswith("Invalid input:")


def test_report_command(state) -> None:
    assert run_command(state, "/report") == "No data yet. Add cases to see reports."

    run_command(state, NEW_CASE)
    reply = run_command(state, "/report")
    assert "Cases opened by month:" in reply
    assert "No completed cases yet." in reply
    assert "No tasks yet." in reply


def test_export_and_import_commands(state, tmp_path: Path) -> None:
    run_command(state, NEW_CASE)
    export_dir = tmp_path / "out"

    reply = run_command(state, f"/export {export_dir}")
    assert reply.startswith("Exported 1 cases to ")
    [path] = list(export_dir.glob("case-tracker-export-*.json"))
    assert json.loads(path.read_text("utf-8"))[0]["caseNumber"] == "C-2024-001"

    run_command(state, f"/case delete {state.store.cases[0].id}")
    assert run_command(state, f"/import {path}") == f"Imported 1 cases from {path}"
    assert len(state.store.cases) == 1

    bad = tmp_path / "bad.json"
    bad.write_text("{}", "utf-8")
    assert run_command(state, f"/import {bad}").startswith("Failed to import data.")
    assert len(state.store.cases) == 1

    assert run_command(state, f"/import {tmp_path / 'missing.json'}").startswith("File not found:")


def test_webhook_commands_deliver_events(state, sent_requests) -> None:
    assert run_command(state, "/webhook").startswith("No webhook URL configured")
    assert run_command(state, "/webhook test").startswith("Webhook test failed:")

    assert run_command(state, "/webhook set https://hooks.example.com/abc") == "Webhook URL saved."
    assert run_command(state, "/webhook") == "Webhook URL: https://hooks.example.com/abc"

    assert run_command(state, "/webhook test").startswith("Webhook test sent.")
    assert json.loads(sent_requests[-1].content)["action"] == "test_webhook"

    state.webhooks.start()
    try:
        run_command(state, NEW_CASE)
        assert state.webhooks.flush(timeout=5.0)
    finally:
        state.webhooks.stop(timeout=5.0)

    body = json.loads(sent_requests[-1].content)
    assert str(sent_requests[-1].url) == "https://hooks.example.com/abc"
    assert body["action"] == "case_created"
    assert body["clientName"] == "Acme Ltd"

    assert run_command(state, "/webhook clear") == "Webhook URL cleared."
    assert run_command(state, "/webhook").startswith("No webhook URL configured")


def test_session_persists_between_runs(settings) -> None:
    first = create_initial_state(settings=settings)
    open_session(first)
    try:
        run_command(first, NEW_CASE)
    finally:
        close_session(first)

    second = create_initial_state(settings=settings)
    open_session(second)
    try:
        assert [c.case_number for c in second.store.cases] == ["C-2024-001"]
    finally:
        close_session(second)
