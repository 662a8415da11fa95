"""
Per-event fan-out of verified webhook payloads.

Every messaging event and every new-comment change becomes its own asyncio
task. Nothing awaits those tasks on the request path; a done callback logs
failures and records them in the runtime status slot. Delivery is
at-most-once: no retry, no reordering, no deduplication.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from ..metrics import WebhookMetrics
from .contracts import (
    ChangeEvent,
    CommentRecord,
    Entry,
    HandlerRegistry,
    InboundPayload,
    MessagingEvent,
)
from .status import RuntimeStatusSink

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventDispatcher:
    """Decompose payloads and start one handler invocation per event."""

    def __init__(
        self,
        handlers: HandlerRegistry,
        sink: RuntimeStatusSink,
        *,
        metrics: WebhookMetrics | None = None,
    ) -> None:
        self._handlers = handlers
        self._sink = sink
        self._metrics = metrics
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, payload: InboundPayload) -> int:
        """
        Start handler invocations for every event in ``payload``.

        Must be called from a running event loop. Entries and their events
        are started in payload order; returns the number of invocations
        started. Failures are isolated per entry and per event.
        """
        started = 0
        for raw_entry in payload.entry or []:
            try:
                entry = Entry.model_validate(raw_entry)
            except Exception as exc:
                self._record_failure("entry", "Error decoding webhook entry", exc)
                continue
            for raw_event in entry.messaging or []:
                started += self._dispatch_messaging(raw_event)
            for raw_change in entry.changes or []:
                started += self._dispatch_change(raw_change, entry.id)
        return started

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight handler invocations (shutdown and tests)."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        _done, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning("%d handler invocation(s) still running after drain.", len(still_running))

    def _dispatch_messaging(self, raw_event: Any) -> int:
        try:
            event = MessagingEvent.model_validate(raw_event)
            timestamp = event.timestamp or _now_ms()
            if event.message is not None:
                self._spawn(
                    "message",
                    self._handlers.on_message,
                    event.message,
                    event.sender_id,
                    event.recipient_id,
                    timestamp,
                )
            elif event.postback is not None:
                self._spawn(
                    "postback",
                    self._handlers.on_postback,
                    event.postback,
                    event.sender_id,
                    event.recipient_id,
                    timestamp,
                )
            else:
                logger.debug("Ignoring messaging event without message or postback.")
                return 0
        except Exception as exc:
            self._record_failure("messaging", "Error dispatching messaging event", exc)
            return 0
        return 1

    def _dispatch_change(self, raw_change: Any, entry_id: str | None) -> int:
        try:
            change = ChangeEvent.model_validate(raw_change)
            if not change.is_new_comment():
                return 0
            value = change.details
            comment = CommentRecord(
                comment_id=value.comment_id,
                post_id=value.post_id,
                sender_id=value.sender.id if value.sender else None,
                sender_name=value.sender.name if value.sender else None,
                message=value.message or "",
                created_at=value.created_time or _now_ms(),
            )
            self._spawn("comment", self._handlers.on_comment, comment, entry_id)
        except Exception as exc:
            self._record_failure("comment", "Error dispatching comment event", exc)
            return 0
        return 1

    def _spawn(self, kind: str, handler: Callable[..., Any], *args: Any) -> None:
        task = asyncio.create_task(self._invoke(handler, *args), name=f"pagebot-{kind}")
        self._tasks.add(task)
        if self._metrics is not None:
            self._metrics.dispatch_started(kind)

        def _on_done(t: asyncio.Task[None], _kind: str = kind) -> None:
            self._tasks.discard(t)
            if self._metrics is not None:
                self._metrics.dispatch_finished()
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                self._record_failure(_kind, f"Error handling {_kind}", exc)

        task.add_done_callback(_on_done)

    @staticmethod
    async def _invoke(handler: Callable[..., Any], *args: Any) -> None:
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    def _record_failure(self, kind: str, message: str, exc: BaseException) -> None:
        logger.error("%s: %s", message, exc, exc_info=exc)
        if self._metrics is not None:
            self._metrics.failure(kind)
        self._sink.record(exc)


__all__ = ["EventDispatcher"]
