# src/case_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires storage, the case store and the webhook dispatcher into AppState.

Nothing is loaded or started here; main() drives the lifecycle.
"""

from __future__ import annotations

import logging

from ..cases.store import CaseStore
from ..config import get_settings
from ..core.state import AppState
from ..storage.local import LocalStorage
from ..webhooks.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.storage_dir.mkdir(parents=True, exist_ok=True)
    settings.export_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, transport=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings(). `transport` is passed
    to the webhook HTTP clients (tests use httpx.MockTransport).
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    storage = LocalStorage(settings.storage_dir)
    store = CaseStore(storage, default_webhook_url=settings.webhook_url)
    webhooks = WebhookDispatcher(
        store.get_webhook_url,
        timeout_seconds=settings.webhook_timeout_seconds,
        app_name=settings.app_name,
        enabled=settings.webhook_enabled,
        transport=transport,
    )
    store.events = webhooks

    return AppState(settings=settings, storage=storage, store=store, webhooks=webhooks)


def open_session(state: AppState) -> None:
    """Load persisted cases and start webhook delivery."""
    state.store.load()
    state.webhooks.start()


def close_session(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.webhooks.stop(timeout=10.0)
    except Exception:
        logger.exception("Failed to stop webhook dispatcher.")
