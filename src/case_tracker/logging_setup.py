# src/case_tracker/logging_setup.py

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER = "case_tracker"

# Background loggers that would interleave with the console prompt.
QUIET_LOGGERS = ("case_tracker.webhooks",)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the interactive REPL.

    App records pass, except those under a quiet prefix, which need WARNING.
    Everything else (httpx, httpcore, py.warnings) needs ERROR.
    """

    def __init__(self, quiet: Iterable[str] = QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name != APP_LOGGER and not name.startswith(APP_LOGGER + "."):
            return record.levelno >= logging.ERROR

        for prefix in self._quiet:
            if name == prefix or name.startswith(prefix + "."):
                return record.levelno >= logging.WARNING
        return True


def log_filename(app_name: str) -> str:
    """'Case Tracker' -> 'Case_Tracker.log'; falls back to the package name."""
    stem = _UNSAFE_CHARS.sub("_", app_name.strip()).strip("._")
    return f"{stem or APP_LOGGER}.log"


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """Map CASETRACK_LOG_LEVEL text ("debug", "WARNING", "10") to a logging level."""
    raw = (name or "").strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/case_tracker",
    app_name: str = "case-tracker",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers on the root logger.

    Call once at startup, before the first log record. Existing root handlers
    are replaced. Returns the log file path (<log_dir>/<app_name>.log).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / log_filename(app_name)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Request lines from the webhook client are only useful in the file log.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
