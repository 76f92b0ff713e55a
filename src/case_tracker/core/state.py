# src/case_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..cases.store import CaseStore
from ..storage.local import LocalStorage
from ..webhooks.dispatcher import WebhookDispatcher


@dataclass
class AppState:
    """Session context handed to every consumer (commands, console)."""

    # Settings (or a compatible namespace in tests).
    settings: Any

    storage: LocalStorage
    store: CaseStore
    webhooks: WebhookDispatcher
