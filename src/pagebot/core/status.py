"""
Runtime error slot and the readiness summary served by ``/status``.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from .config import ConfigStore

logger = logging.getLogger(__name__)

STATUS_READY = "READY"
STATUS_SETUP_REQUIRED = "SETUP REQUIRED"


class RuntimeStatusSink:
    """
    Process-wide record of the most recent unhandled runtime error.

    Single writer slot, overwritten on every failure and never cleared.
    Purely observational: nothing branches on its value.
    """

    def __init__(self) -> None:
        self._last_error: str | None = None

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def record(self, error: BaseException | str) -> None:
        if isinstance(error, BaseException):
            message = str(error) or error.__class__.__name__
        else:
            message = error
        self._last_error = message
        logger.debug("Recorded runtime error: %s", message)


class PageInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""


class StatusReport(BaseModel):
    """JSON-shaped readiness summary consumed by the dashboard."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: str
    missing_config: list[str] = Field(default_factory=list, alias="missingConfig")
    callback_url: str = Field(alias="callbackUrl")
    verify_token: str = Field(default="", alias="verifyToken")
    page: PageInfo = Field(default_factory=PageInfo)
    last_error: str | None = Field(default=None, alias="lastError")

    @property
    def ready(self) -> bool:
        return self.status == STATUS_READY


def build_status_report(
    store: ConfigStore, sink: RuntimeStatusSink, *, base_url: str
) -> StatusReport:
    """Assemble the status summary from a fresh config read and the error slot."""
    snapshot = store.snapshot()
    missing = store.get_missing_keys()
    return StatusReport(
        status=STATUS_SETUP_REQUIRED if missing else STATUS_READY,
        missing_config=missing,
        callback_url=f"{base_url.rstrip('/')}{snapshot.webhook_path}",
        verify_token=snapshot.facebook.verify_token or "",
        page=PageInfo(
            id=snapshot.facebook.page_id or "",
            name=snapshot.app.name or "FB Page Bot",
        ),
        last_error=sink.last_error,
    )


__all__ = [
    "STATUS_READY",
    "STATUS_SETUP_REQUIRED",
    "PageInfo",
    "RuntimeStatusSink",
    "StatusReport",
    "build_status_report",
]
