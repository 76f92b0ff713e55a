# src/case_tracker/webhooks/dispatcher.py

from __future__ import annotations

"""
Webhook dispatcher.

Fire-and-forget delivery of domain events to the configured automation
webhook:
- publish() is called from store mutations and never blocks,
- a background thread runs its own asyncio loop and drains a queue,
- each event is POSTed once as JSON; response status/body are ignored,
- transport errors are logged and dropped (no retries).

Store mutations run synchronously on the caller's thread; delivery runs on
the dispatcher's own event loop.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from typing import Any

import httpx

from ..cases.events import DomainEvent, webhook_test_event
from ..cases.models import utc_now

logger = logging.getLogger(__name__)

_STOP = object()


class WebhookError(RuntimeError):
    """Manual webhook test could not reach the endpoint."""


async def deliver(client: httpx.AsyncClient, url: str, payload: dict[str, Any]) -> bool:
    """POST one payload. Returns False (and logs) on transport failure."""
    action = payload.get("action")
    try:
        resp = await client.post(url, json=payload)
    except httpx.HTTPError:
        logger.warning("Failed to trigger webhook action=%s", action, exc_info=True)
        return False
    logger.debug("Webhook sent action=%s status=%s", action, resp.status_code)
    return True


class WebhookDispatcher:
    """EventSink that delivers events to the webhook URL returned by `url_provider`."""

    def __init__(
        self,
        url_provider: Callable[[], str],
        *,
        timeout_seconds: float = 10.0,
        app_name: str = "case-tracker",
        enabled: bool = True,
        transport: Any = None,
    ) -> None:
        self._url_provider = url_provider
        self._timeout = httpx.Timeout(max(1.0, float(timeout_seconds)))
        self._app_name = app_name
        self._enabled = enabled
        self._transport = transport

        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Any] | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ---- lifecycle ----

    def start(self) -> None:
        if self.running:
            return

        ready = threading.Event()

        def runner() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._loop = loop
            queue: asyncio.Queue[Any] = asyncio.Queue()
            self._queue = queue
            ready.set()

            try:
                loop.run_until_complete(self._worker(queue))
            finally:
                with contextlib.suppress(Exception):
                    loop.close()

        t = threading.Thread(target=runner, name="webhook-dispatcher", daemon=True)
        t.start()

        if not ready.wait(timeout=5.0):
            logger.error("Webhook dispatcher thread did not initialize properly.")
            return

        self._thread = t
        logger.info("Webhook dispatcher started.")

    def stop(self, timeout: float | None = 10.0) -> None:
        """Deliver what is already queued, then stop the background thread."""
        thread = self._thread
        if thread is None or not thread.is_alive():
            return

        self._enqueue(_STOP)
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Webhook dispatcher did not stop within %ss", timeout)
            return

        self._thread = None
        self._loop = None
        self._queue = None
        logger.info("Webhook dispatcher stopped.")

    def flush(self, timeout: float | None = 10.0) -> bool:
        """Block until every queued event has been attempted. Returns False on timeout."""
        if not self.running or self._loop is None or self._queue is None:
            return True

        fut = asyncio.run_coroutine_threadsafe(self._queue.join(), self._loop)
        try:
            fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            return False
        return True

    # ---- EventSink ----

    def publish(self, event: DomainEvent) -> None:
        if not self._enabled:
            return

        url = (self._url_provider() or "").strip()
        if not url:
            logger.debug("No webhook URL configured; dropping action=%s", event.action)
            return

        if not self.running:
            logger.warning("Webhook dispatcher not running; dropping action=%s", event.action)
            return

        self._enqueue((url, event.to_payload()))

    def _enqueue(self, item: Any) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            # Loop already closed (shutdown race).
            logger.debug("Webhook loop closed; item dropped.", exc_info=True)

    async def _worker(self, queue: asyncio.Queue[Any]) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            while True:
                item = await queue.get()
                try:
                    if item is _STOP:
                        return
                    url, payload = item
                    await deliver(client, url, payload)
                except Exception:
                    logger.exception("Webhook worker crashed on one item; continuing")
                finally:
                    queue.task_done()

    # ---- manual test ----

    def send_test(self, url: str | None = None) -> dict[str, Any]:
        """
        Send a `test_webhook` action synchronously and return the payload sent.

        Unlike event delivery, a transport failure raises WebhookError so the
        caller can report it.
        """
        target = (url if url is not None else self._url_provider() or "").strip()
        if not target:
            raise WebhookError("No webhook URL configured.")

        payload = webhook_test_event(self._app_name, utc_now()).to_payload()
        transport = self._transport if isinstance(self._transport, httpx.BaseTransport) else None
        try:
            with httpx.Client(timeout=self._timeout, transport=transport) as client:
                client.post(target, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Webhook test failed url=%s: %s", target, e)
            raise WebhookError(f"Failed to reach webhook: {e}") from e

        logger.info("Webhook test sent url=%s", target)
        return payload
