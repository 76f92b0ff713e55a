# src/case_tracker/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import cast

from ..cases.models import Case, CaseFormData, CasePatch, Task, TaskFormData, TaskPatch
from ..cases.snapshot import SnapshotFormatError, export_to_file, import_from_file
from ..core.state import AppState
from ..views.aggregates import (
    active_case_count,
    all_tasks,
    cases_opened_by_month,
    filter_tasks,
    outcome_breakdown,
    recent_cases,
    search_cases,
    sort_task_rows,
    status_counts,
    task_completion,
    task_status_breakdown,
    upcoming_hearings,
)
from ..views.due_dates import group_by_due, sort_tasks
from ..webhooks.dispatcher import WebhookError

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /cases, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Arguments are split shell-style, so values with spaces can be quoted:
        /case new client="Jane Doe" ...
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----

_CASE_FIELDS = {
    "number": "case_number",
    "case_number": "case_number",
    "court": "court_case_number",
    "court_case_number": "court_case_number",
    "description": "description",
    "desc": "description",
    "client": "client_name",
    "client_name": "client_name",
    "opened": "open_date",
    "open_date": "open_date",
    "opponent": "opponent",
    "status": "status",
    "hearing": "next_hearing_date",
    "next_hearing_date": "next_hearing_date",
}

_TASK_FIELDS = {
    "title": "title",
    "description": "description",
    "desc": "description",
    "due": "due_date",
    "due_date": "due_date",
}


def _split_kv(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate positional words from key=value pairs."""
    words: list[str] = []
    kv: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key:
            kv[key.strip().lower()] = value
        else:
            words.append(a)
    return words, kv


def _map_fields(kv: dict[str, str], aliases: dict[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in kv.items():
        field_name = aliases.get(key)
        if field_name is None:
            raise ValueError(f"Unknown field: {key}")
        out[field_name] = value
    return out


def _resolve_case(state: AppState, ref: str) -> Case | None:
    """Find a case by full id or unique id prefix."""
    store = state.store
    exact = store.get_case_by_id(ref)
    if exact is not None:
        return exact
    matches = [c for c in store.cases if c.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _resolve_task(case: Case, ref: str) -> Task | None:
    exact = case.get_task(ref)
    if exact is not None:
        return exact
    matches = [t for t in case.tasks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _short(id_: str) -> str:
    return id_[:8]


def _fmt_case_line(c: Case) -> str:
    hearing = f", hearing {c.next_hearing_date}" if c.next_hearing_date else ""
    return (
        f"{_short(c.id)}  {c.case_number}  {c.client_name} vs {c.opponent}  "
        f"[{c.status.label}] opened {c.open_date}{hearing}"
    )


def _fmt_task_line(t: Task) -> str:
    mark = "x" if t.completed else " "
    due = f" (due {t.due_date})" if t.due_date else ""
    return f"[{mark}] {_short(t.id)}  {t.title}{due}"


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_stats(state: AppState, args: list[str]) -> str:
    cases = state.store.cases
    tc = task_completion(cases)
    lines = [
        "Dashboard:",
        f"  Total cases: {len(cases)}",
        f"  Active cases: {active_case_count(cases)}",
        f"  Upcoming hearings: {len(upcoming_hearings(cases))}",
        f"  Tasks: {tc.completed}/{tc.total} completed ({tc.percent}%)",
    ]
    counts = status_counts(cases)
    if counts:
        lines.append("  By status:")
        lines.extend(f"    {s.label}: {n}" for s, n in counts.items())
    recent = recent_cases(cases)
    if recent:
        lines.append("  Recent cases:")
        lines.extend(f"    {_fmt_case_line(c)}" for c in recent)
    return "\n".join(lines)


def cmd_cases(state: AppState, args: list[str]) -> str:
    """
    /cases                 -> all cases, newest first
    /cases smith           -> search
    /cases status=pending  -> filter by status
    """
    words, kv = _split_kv(args)
    found = search_cases(state.store.cases, " ".join(words), kv.get("status"))
    if not found:
        if not state.store.cases:
            return "No cases yet. Use /case new to add one."
        return "No cases match your search criteria."
    return "\n".join(_fmt_case_line(c) for c in found)


def cmd_case(state: AppState, args: list[str]) -> str:
    """
    /case <id>                      -> details
    /case new key=value ...         -> create
    /case edit <id> key=value ...   -> partial update
    /case delete <id>               -> delete (with tasks)
    """
    if not args:
        return (
            "Usage:\n"
            "  /case <id>\n"
            "  /case new number=... court=... client=... opponent=... opened=YYYY-MM-DD "
            "description=... [status=new] [hearing=YYYY-MM-DD]\n"
            "  /case edit <id> key=value ...\n"
            "  /case delete <id>"
        )

    sub = args[0].lower()
    store = state.store

    if sub == "new":
        _, kv = _split_kv(args[1:])
        fields = _map_fields(kv, _CASE_FIELDS)
        form = CaseFormData(
            case_number=fields.get("case_number", ""),
            court_case_number=fields.get("court_case_number", ""),
            description=fields.get("description", ""),
            client_name=fields.get("client_name", ""),
            open_date=fields.get("open_date", ""),
            opponent=fields.get("opponent", ""),
            status=fields.get("status", "new"),
            next_hearing_date=fields.get("next_hearing_date"),
        )
        case = store.add_case(form)
        return f"Case created: {_fmt_case_line(case)}"

    if sub == "edit":
        if len(args) < 3:
            return "Usage: /case edit <id> key=value ..."
        case = _resolve_case(state, args[1])
        if case is None:
            return f"Case not found: {args[1]}"
        _, kv = _split_kv(args[2:])
        updated = store.update_case(case.id, CasePatch(**_map_fields(kv, _CASE_FIELDS)))
        return f"Case updated: {_fmt_case_line(updated)}" if updated else "Case not found."

    if sub == "delete":
        if len(args) < 2:
            return "Usage: /case delete <id>"
        case = _resolve_case(state, args[1])
        if case is None:
            return f"Case not found: {args[1]}"
        store.delete_case(case.id)
        return f"Case deleted: {case.case_number} ({len(case.tasks)} tasks removed)"

    case = _resolve_case(state, args[0])
    if case is None:
        return f"Case not found: {args[0]}"

    lines = [
        f"Case {case.case_number} (court no. {case.court_case_number})",
        f"  id: {case.id}",
        f"  Client: {case.client_name}",
        f"  Opponent: {case.opponent}",
        f"  Status: {case.status.label}",
        f"  Opened: {case.open_date}",
        f"  Next hearing: {case.next_hearing_date or '-'}",
        f"  Description: {case.description}",
        f"  Tasks ({len(case.tasks)}):",
    ]
    lines.extend(f"    {_fmt_task_line(t)}" for t in sort_tasks(case.tasks))
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks [query] [filter=all|completed|incomplete] [sort=due_date|created_at|case|title]
    """
    words, kv = _split_kv(args)
    rows = all_tasks(state.store.cases)
    if not rows:
        return "No tasks yet. Use /task new <case_id> title=... to add one."

    rows = filter_tasks(rows, " ".join(words), kv.get("filter", "all"))
    rows = sort_task_rows(rows, kv.get("sort", "due_date"))
    if not rows:
        return "No tasks match your search criteria."

    lines: list[str] = []
    for bucket, items in group_by_due(rows, task_of=lambda r: r.task).items():
        if not items:
            continue
        lines.append(f"{bucket.heading} ({len(items)}):")
        for r in items:
            lines.append(f"  {_fmt_task_line(r.task)}  - {r.client_name} / {r.case_number}")
    return "\n".join(lines)


def cmd_task(state: AppState, args: list[str]) -> str:
    """
    /task new <case_id> title=... [description=...] [due=YYYY-MM-DD]
    /task edit <case_id> <task_id> key=value ...
    /task done <case_id> <task_id>      -> toggle completion
    /task delete <case_id> <task_id>
    """
    usage = (
        "Usage:\n"
        "  /task new <case_id> title=... [description=...] [due=YYYY-MM-DD]\n"
        "  /task edit <case_id> <task_id> key=value ...\n"
        "  /task done <case_id> <task_id>\n"
        "  /task delete <case_id> <task_id>"
    )
    if len(args) < 2:
        return usage

    sub = args[0].lower()
    case = _resolve_case(state, args[1])
    if case is None:
        return f"Case not found: {args[1]}"
    store = state.store

    if sub == "new":
        words, kv = _split_kv(args[2:])
        fields = _map_fields(kv, _TASK_FIELDS)
        title = fields.get("title") or " ".join(words)
        task = store.add_task(
            case.id,
            TaskFormData(
                title=title,
                description=fields.get("description"),
                due_date=fields.get("due_date"),
            ),
        )
        return f"Task added: {_fmt_task_line(task)}" if task else "Case not found."

    if sub not in ("edit", "done", "delete"):
        return usage
    if len(args) < 3:
        return usage

    task = _resolve_task(case, args[2])
    if task is None:
        return f"Task not found: {args[2]}"

    if sub == "edit":
        _, kv = _split_kv(args[3:])
        updated = store.update_task(case.id, task.id, TaskPatch(**_map_fields(kv, _TASK_FIELDS)))
        return f"Task updated: {_fmt_task_line(updated)}" if updated else "Task not found."

    if sub == "done":
        toggled = store.toggle_task_completion(case.id, task.id)
        if toggled is None:
            return "Task not found."
        return f"Task {'completed' if toggled.completed else 'reopened'}: {_fmt_task_line(toggled)}"

    store.delete_task(case.id, task.id)
    return f"Task deleted: {task.title}"


def cmd_report(state: AppState, args: list[str]) -> str:
    cases = state.store.cases
    if not cases:
        return "No data yet. Add cases to see reports."

    lines = ["Cases opened by month:"]
    lines.extend(f"  {label}: {n}" for label, n in cases_opened_by_month(cases, date.today()))

    outcomes = outcome_breakdown(cases)
    lines.append("Case outcomes:")
    if outcomes:
        lines.extend(f"  {k}: {v}" for k, v in outcomes.items())
    else:
        lines.append("  No completed cases yet.")

    tasks = task_status_breakdown(cases)
    lines.append("Task status:")
    if tasks:
        lines.extend(f"  {k}: {v}" for k, v in tasks.items())
    else:
        lines.append("  No tasks yet.")
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str]) -> str:
    directory = Path(args[0]).expanduser() if args else state.settings.export_dir
    path = export_to_file(state.store, directory)
    return f"Exported {len(state.store.cases)} cases to {path}"


def cmd_import(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /import <path-to-export.json>"
    path = Path(args[0]).expanduser()
    if not path.exists():
        return f"File not found: {path}"
    try:
        n = import_from_file(state.store, path)
    except SnapshotFormatError as e:
        return f"Failed to import data. Please check the JSON format. ({e})"
    return f"Imported {n} cases from {path}"


def cmd_webhook(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """
    /webhook            -> show configured URL
    /webhook set <url>  -> store URL
    /webhook clear      -> remove stored URL
    /webhook test       -> send a test_webhook action
    """
    store = state.store
    if not args:
        url = store.get_webhook_url()
        return f"Webhook URL: {url}" if url else "No webhook URL configured. Use /webhook set <url>."

    sub = args[0].lower()

    if sub == "set":
        if len(args) < 2:
            return "Usage: /webhook set <url>"
        store.set_webhook_url(args[1])
        return "Webhook URL saved."

    if sub == "clear":
        store.set_webhook_url("")
        return "Webhook URL cleared."

    if sub == "test":
        if emit:
            with contextlib.suppress(Exception):
                emit("[WEBHOOK] Sending test request...")
        try:
            state.webhooks.send_test()
        except WebhookError as e:
            return f"Webhook test failed: {e}"
        return "Webhook test sent. Check your automation's history to confirm it was triggered."

    return "Usage: /webhook [set <url> | clear | test]"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("stats", cmd_stats, help_text="Dashboard: totals, status counts, task completion.")
registry.register("cases", cmd_cases, help_text="List/search cases: /cases [query] [status=...].")
registry.register("case", cmd_case, help_text="Case details and edits: /case <id> | new | edit | delete.")
registry.register(
    "tasks", cmd_tasks, help_text="Tasks grouped by due date: /tasks [query] [filter=...] [sort=...]."
)
registry.register("task", cmd_task, help_text="Task edits: /task new | edit | done | delete.")
registry.register("report", cmd_report, help_text="Reports: cases per month, outcomes, task status.")
registry.register("export", cmd_export, help_text="Export all cases to JSON: /export [dir].")
registry.register("import", cmd_import, help_text="Replace all cases from an export: /import <path>.")
registry.register("webhook", cmd_webhook, help_text="Webhook config: /webhook [set <url> | clear | test].")
