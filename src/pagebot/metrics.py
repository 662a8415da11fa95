"""
Prometheus counters for webhook traffic and handler dispatch.

Metrics live on a private registry so several apps (or tests) can coexist in
one process; ``/metrics`` renders that registry when
``server.enableMetrics`` is on.
"""

from __future__ import annotations

import logging

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest

logger = logging.getLogger(__name__)


class WebhookMetrics:
    """Counters and gauges updated by the gateway and the dispatcher."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self._requests = Counter(
            "pagebot_webhook_requests",
            "Webhook HTTP requests received, by kind (verify/ingest).",
            ["kind"],
            registry=self.registry,
        )
        self._verifications = Counter(
            "pagebot_webhook_verifications",
            "Subscription handshake outcomes.",
            ["result"],
            registry=self.registry,
        )
        self._skipped = Counter(
            "pagebot_ingestion_skipped",
            "Acknowledged deliveries that were not dispatched, by reason.",
            ["reason"],
            registry=self.registry,
        )
        self._dispatched = Counter(
            "pagebot_events_dispatched",
            "Handler invocations started, by event kind.",
            ["kind"],
            registry=self.registry,
        )
        self._failures = Counter(
            "pagebot_handler_failures",
            "Handler invocations or event decompositions that failed.",
            ["kind"],
            registry=self.registry,
        )
        self._in_flight = Gauge(
            "pagebot_dispatch_in_flight",
            "Handler invocations currently running.",
            registry=self.registry,
        )

    def request(self, kind: str) -> None:
        self._requests.labels(kind=kind).inc()

    def verification(self, succeeded: bool) -> None:
        self._verifications.labels(result="success" if succeeded else "failure").inc()

    def skipped(self, reason: str) -> None:
        self._skipped.labels(reason=reason).inc()

    def dispatch_started(self, kind: str) -> None:
        self._dispatched.labels(kind=kind).inc()
        self._in_flight.inc()

    def dispatch_finished(self) -> None:
        self._in_flight.dec()

    def failure(self, kind: str) -> None:
        self._failures.labels(kind=kind).inc()

    def render(self) -> tuple[bytes, str]:
        """Return the exposition payload and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


__all__ = ["WebhookMetrics"]
