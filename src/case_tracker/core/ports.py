# src/case_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the case store.

The store depends on Protocols instead of concrete implementations, so the
storage backend and the event delivery path can be swapped in tests.
"""

from typing import Protocol

from ..cases.events import DomainEvent


class KeyValueStorage(Protocol):
    """Durable string storage (one value per key)."""

    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class EventSink(Protocol):
    """
    Receives domain events after a mutation has been persisted.

    Implementations must not block; the store logs and ignores any exception.
    """

    def publish(self, event: DomainEvent) -> None: ...
