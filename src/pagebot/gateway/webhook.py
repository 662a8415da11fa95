"""
HTTP surface for the platform webhook: subscription handshake and ingestion.

The POST handler acknowledges before doing any work. Processing happens in a
FastAPI background task after the response has been sent, so a slow or
failing handler can never delay or alter the acknowledgment. Signature
verification is intentionally not performed.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import PlainTextResponse

from ..core.config import ConfigStore
from ..core.contracts import InboundPayload
from ..core.dispatcher import EventDispatcher
from ..core.status import RuntimeStatusSink
from ..metrics import WebhookMetrics

logger = logging.getLogger(__name__)

ACK_BODY = "EVENT_RECEIVED"
FORBIDDEN_BODY = "Forbidden"
SUBSCRIBE_MODE = "subscribe"
PAGE_OBJECT = "page"


class WebhookGateway:
    """Verification handshake plus acknowledge-then-dispatch ingestion."""

    def __init__(
        self,
        store: ConfigStore,
        dispatcher: EventDispatcher,
        sink: RuntimeStatusSink,
        *,
        metrics: WebhookMetrics | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._sink = sink
        self._metrics = metrics

    def verify(self, mode: str | None, token: str | None, challenge: str | None) -> tuple[int, str]:
        """Return ``(status_code, body)`` for a subscription handshake."""
        try:
            expected = self._store.snapshot().facebook.verify_token or ""
            accepted = (
                mode == SUBSCRIBE_MODE
                and isinstance(token, str)
                and hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
            )
        except Exception as exc:
            logger.error("Error in webhook verification: %s", exc)
            self._sink.record(exc)
            accepted = False
        if self._metrics is not None:
            self._metrics.verification(accepted)
        if accepted:
            logger.info("Webhook verified successfully")
            return 200, challenge or ""
        logger.warning("Webhook verification failed (mode=%s)", mode)
        return 403, FORBIDDEN_BODY

    async def process(self, body: Any) -> None:
        """Post-acknowledgment path: reload config, check the discriminator, dispatch."""
        try:
            snapshot = await asyncio.to_thread(self._store.snapshot)
            if not snapshot.facebook.page_access_token:
                logger.warning("Skipping webhook event processing: pageAccessToken is missing")
                self._skip("missing_token")
                return
            if not isinstance(body, dict) or body.get("object") != PAGE_OBJECT:
                logger.debug("Ignoring webhook delivery for object %r", _object_of(body))
                self._skip("unexpected_object")
                return
            payload = InboundPayload.model_validate(body)
            started = self._dispatcher.dispatch(payload)
            logger.debug(
                "Dispatched %d event(s) from %d entr(y/ies)", started, len(payload.entry or [])
            )
        except Exception as exc:
            logger.exception("Error processing webhook event: %s", exc)
            self._sink.record(exc)

    def router(self, webhook_path: str) -> APIRouter:
        router = APIRouter()

        @router.get(webhook_path, response_class=PlainTextResponse)
        async def verify_webhook(request: Request) -> PlainTextResponse:
            if self._metrics is not None:
                self._metrics.request("verify")
            params = request.query_params
            status_code, body = await asyncio.to_thread(
                self.verify,
                params.get("hub.mode", params.get("mode")),
                params.get("hub.verify_token", params.get("verify_token")),
                params.get("hub.challenge", params.get("challenge")),
            )
            return PlainTextResponse(body, status_code=status_code)

        @router.post(webhook_path, response_class=PlainTextResponse)
        async def receive_webhook(
            request: Request, background_tasks: BackgroundTasks
        ) -> PlainTextResponse:
            if self._metrics is not None:
                self._metrics.request("ingest")
            body = await _read_json(request)
            background_tasks.add_task(self.process, body)
            return PlainTextResponse(ACK_BODY, status_code=200)

        return router

    def _skip(self, reason: str) -> None:
        if self._metrics is not None:
            self._metrics.skipped(reason)


async def _read_json(request: Request) -> Any:
    """Parse the request body, treating anything unreadable as an empty object."""
    try:
        raw = await request.body()
    except Exception as exc:
        logger.warning("Failed to read webhook body: %s", exc)
        return {}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Webhook body is not valid JSON (%d bytes); treating as empty.", len(raw))
        return {}


def _object_of(body: Any) -> Any:
    return body.get("object") if isinstance(body, dict) else type(body).__name__


__all__ = ["ACK_BODY", "FORBIDDEN_BODY", "WebhookGateway"]
