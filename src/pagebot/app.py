"""
FastAPI application factory.

Wires the settings store, dispatcher, webhook gateway and status slot into
one app, adds the operational endpoints, and runs the lifecycle
collaborators at startup without letting their failures stop the service.
The app exposes no ``listen``; ``pagebot.entrypoint`` (or any ASGI server)
hosts it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .core.config import ConfigSnapshot, ConfigStore
from .core.contracts import HandlerRegistry, PluginLoader, UserStore
from .core.dispatcher import EventDispatcher
from .core.status import RuntimeStatusSink, build_status_report
from .gateway.webhook import WebhookGateway
from .handlers import NullPluginLoader, NullUserStore, default_registry
from .metrics import WebhookMetrics

logger = logging.getLogger(__name__)

_DRAIN_TIMEOUT_SECONDS = 5.0
_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


async def _run_lifecycle_step(label: str, step: Callable[[], Any]) -> None:
    try:
        result = step()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning("%s initialisation failed: %s", label, exc)


def _log_start_banner(snapshot: ConfigSnapshot) -> None:
    logger.info("Starting %s %s", snapshot.app.name, snapshot.app.version)
    logger.info("Page: %s", snapshot.facebook.page_id or "N/A")
    logger.info("Timezone: %s", snapshot.bot.timezone)
    logger.info("Prefix: %s", snapshot.bot.prefix)


def create_app(
    store: ConfigStore,
    *,
    handlers: HandlerRegistry | None = None,
    sink: RuntimeStatusSink | None = None,
    user_store: UserStore | None = None,
    plugin_loader: PluginLoader | None = None,
    metrics: WebhookMetrics | None = None,
    dashboard_dir: str | Path | None = None,
) -> FastAPI:
    """
    Build the webhook application.

    The route layout (webhook path, CORS origins, optional health and
    metrics endpoints) is fixed from the snapshot read here; request
    handlers re-read the store on every call.
    """
    snapshot = store.snapshot()
    sink = sink or RuntimeStatusSink()
    metrics = metrics or WebhookMetrics()
    user_store = user_store or NullUserStore()
    plugin_loader = plugin_loader or NullPluginLoader()
    dispatcher = EventDispatcher(handlers or default_registry(), sink, metrics=metrics)
    gateway = WebhookGateway(store, dispatcher, sink, metrics=metrics)
    webhook_path = snapshot.webhook_path

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _log_start_banner(await asyncio.to_thread(store.snapshot))
        await _run_lifecycle_step("User store", user_store.init)
        await _run_lifecycle_step("Plugin system", plugin_loader.initialize)
        logger.info("Bot is ready and listening for events on %s", webhook_path)
        yield
        await dispatcher.drain(timeout=_DRAIN_TIMEOUT_SECONDS)
        logger.info("Webhook service stopped.")

    app = FastAPI(title=snapshot.app.name, version=__version__, lifespan=lifespan)
    app.state.store = store
    app.state.sink = sink
    app.state.metrics = metrics
    app.state.dispatcher = dispatcher
    app.state.gateway = gateway

    app.add_middleware(GZipMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(snapshot.security.allowed_domains) or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.include_router(gateway.router(webhook_path))

    @app.get("/status")
    async def status(request: Request) -> dict[str, Any]:
        report = await asyncio.to_thread(
            build_status_report, store, sink, base_url=str(request.base_url)
        )
        return report.model_dump(by_alias=True)

    @app.get("/")
    async def root(request: Request) -> RedirectResponse:
        accept = request.headers.get("accept", "")
        target = "/dashboard" if "text/html" in accept else "/status"
        return RedirectResponse(target)

    if snapshot.server.enable_health_check:

        @app.get("/health")
        async def health() -> dict[str, Any]:
            return {"status": "ok", "inFlight": dispatcher.in_flight}

    if snapshot.server.enable_metrics:

        @app.get("/metrics")
        async def prometheus_metrics() -> Response:
            body, content_type = metrics.render()
            return Response(content=body, media_type=content_type)

    if dashboard_dir is not None:
        directory = Path(dashboard_dir)
        if directory.is_dir():
            app.mount("/dashboard", StaticFiles(directory=directory, html=True), name="dashboard")
        else:
            logger.warning("Dashboard directory %s not found; /dashboard disabled.", directory)

    logger.info("Webhook routes registered on %s", webhook_path)
    return app


__all__ = ["create_app"]
