"""
Logging-only collaborators used when no handler package is wired in.

Real deployments pass their own ``HandlerRegistry`` plus user store and
plugin loader to ``create_app``; these defaults keep the service runnable
and make every delivered event visible in the logs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .core.contracts import CommentRecord, HandlerRegistry

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 100


def _preview(text: Any) -> str:
    return str(text or "")[:_PREVIEW_CHARS]


class LoggingHandlers:
    """Handler set that records every event and does nothing else."""

    async def on_message(
        self,
        message: dict[str, Any],
        sender_id: str | None,
        recipient_id: str | None,
        timestamp: int,
    ) -> None:
        logger.info("Message from %s: %s", sender_id, _preview(message.get("text")))

    async def on_postback(
        self,
        postback: dict[str, Any],
        sender_id: str | None,
        recipient_id: str | None,
        timestamp: int,
    ) -> None:
        logger.info("Postback from %s: %s", sender_id, json.dumps(postback, default=str))

    async def on_comment(self, comment: CommentRecord, entry_id: str | None) -> None:
        logger.info(
            "Comment from %s on %s: %s",
            comment.sender_name or comment.sender_id,
            comment.post_id,
            _preview(comment.message),
        )


def default_registry() -> HandlerRegistry:
    handlers = LoggingHandlers()
    return HandlerRegistry(
        on_message=handlers.on_message,
        on_postback=handlers.on_postback,
        on_comment=handlers.on_comment,
    )


class NullUserStore:
    """User store that keeps nothing."""

    def init(self) -> None:
        logger.debug("NullUserStore initialised; user data will not be persisted.")


class NullPluginLoader:
    """Plugin loader with no plugins."""

    def initialize(self) -> None:
        logger.debug("NullPluginLoader initialised; no plugins loaded.")


__all__ = ["LoggingHandlers", "NullPluginLoader", "NullUserStore", "default_registry"]
