# src/case_tracker/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the case store, starts the
webhook dispatcher and runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from .bootstrap import close_session, create_initial_state, open_session
from ..config import get_settings
from ..logging_setup import level_from_name, setup_logging
from .console import run_console_loop

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=settings.data_dir,
        app_name=settings.app_name,
        console_level=level_from_name(settings.log_level),
    )

    logger.info("Starting %s... (log file: %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)
    open_session(state)

    try:
        run_console_loop(state)
    finally:
        close_session(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
