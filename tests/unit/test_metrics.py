from __future__ import annotations

from pagebot.metrics import WebhookMetrics


def test_instances_use_private_registries() -> None:
    first = WebhookMetrics()
    second = WebhookMetrics()

    first.request("verify")

    assert first.registry.get_sample_value("pagebot_webhook_requests_total", {"kind": "verify"}) == 1.0
    assert second.registry.get_sample_value("pagebot_webhook_requests_total", {"kind": "verify"}) is None


def test_counters_and_gauge() -> None:
    metrics = WebhookMetrics()

    metrics.verification(True)
    metrics.verification(False)
    metrics.verification(False)
    metrics.skipped("missing_token")
    metrics.dispatch_started("message")
    metrics.dispatch_started("comment")
    metrics.dispatch_finished()
    metrics.failure("comment")

    sample = metrics.registry.get_sample_value
    assert sample("pagebot_webhook_verifications_total", {"result": "success"}) == 1.0
    assert sample("pagebot_webhook_verifications_total", {"result": "failure"}) == 2.0
    assert sample("pagebot_ingestion_skipped_total", {"reason": "missing_token"}) == 1.0
    assert sample("pagebot_events_dispatched_total", {"kind": "message"}) == 1.0
    assert sample("pagebot_handler_failures_total", {"kind": "comment"}) == 1.0
    assert sample("pagebot_dispatch_in_flight") == 1.0


def test_render_returns_exposition_text() -> None:
    metrics = WebhookMetrics()
    metrics.request("ingest")

    body, content_type = metrics.render()

    assert content_type.startswith("text/plain")
    assert b'pagebot_webhook_requests_total{kind="ingest"} 1.0' in body
