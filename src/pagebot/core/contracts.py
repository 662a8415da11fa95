"""
Contracts and payload schemas for the webhook pipeline.

Inbound models are deliberately lenient: the platform adds fields over time
and a single odd event must not invalidate its siblings, so entries keep
their events as raw mappings and the dispatcher validates them one by one.
The handler and lifecycle protocols describe the external collaborators the
pipeline calls into.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class WebhookModel(BaseModel):
    """Base class for inbound webhook fragments."""

    model_config = ConfigDict(
        extra="allow", frozen=True, populate_by_name=True, coerce_numbers_to_str=True
    )


class Participant(WebhookModel):
    id: str | None = None
    name: str | None = None


class MessagingEvent(WebhookModel):
    """Message or postback delivered to the page."""

    sender: Participant | None = None
    recipient: Participant | None = None
    # Passed through as sent; usually epoch milliseconds.
    timestamp: Any = None
    message: dict[str, Any] | None = None
    postback: dict[str, Any] | None = None

    @property
    def sender_id(self) -> str | None:
        return self.sender.id if self.sender else None

    @property
    def recipient_id(self) -> str | None:
        return self.recipient.id if self.recipient else None


class ChangeValue(WebhookModel):
    """Body of a feed change notification."""

    item: str | None = None
    verb: str | None = None
    comment_id: str | None = None
    post_id: str | None = None
    sender: Participant | None = Field(default=None, alias="from")
    message: str | None = None
    created_time: int | str | None = None


class ChangeEvent(WebhookModel):
    field: str | None = None
    value: ChangeValue | None = None

    @property
    def details(self) -> ChangeValue:
        return self.value if self.value is not None else ChangeValue()

    def is_new_comment(self) -> bool:
        details = self.details
        return self.field == "feed" and details.item == "comment" and details.verb == "add"


class Entry(WebhookModel):
    """One page/thread context of a webhook delivery."""

    id: str | None = None
    time: int | None = None
    messaging: list[Any] | None = None
    changes: list[Any] | None = None


class InboundPayload(WebhookModel):
    """Top-level webhook body: a discriminator plus ordered entries."""

    object: str | None = None
    entry: list[Any] | None = None


class CommentRecord(WebhookModel):
    """Flattened new-comment notification handed to the comment handler."""

    comment_id: str | None = None
    post_id: str | None = None
    sender_id: str | None = None
    sender_name: str | None = None
    message: str = ""
    created_at: int | str


class MessageHandler(Protocol):
    def __call__(
        self,
        message: dict[str, Any],
        sender_id: str | None,
        recipient_id: str | None,
        timestamp: Any,
    ) -> Any: ...


class PostbackHandler(Protocol):
    def __call__(
        self,
        postback: dict[str, Any],
        sender_id: str | None,
        recipient_id: str | None,
        timestamp: Any,
    ) -> Any: ...


class CommentHandler(Protocol):
    def __call__(self, comment: CommentRecord, entry_id: str | None) -> Any: ...


@dataclass(frozen=True)
class HandlerRegistry:
    """
    The three handler callables, resolved once at startup.

    Each callable may return a plain value or an awaitable.
    """

    on_message: MessageHandler
    on_postback: PostbackHandler
    on_comment: CommentHandler


@runtime_checkable
class UserStore(Protocol):
    """User store collaborator; ``init`` must be idempotent."""

    def init(self) -> Any: ...


@runtime_checkable
class PluginLoader(Protocol):
    """Plugin system collaborator; ``initialize`` must be idempotent."""

    def initialize(self) -> Any: ...


__all__ = [
    "ChangeEvent",
    "ChangeValue",
    "CommentHandler",
    "CommentRecord",
    "Entry",
    "HandlerRegistry",
    "InboundPayload",
    "MessageHandler",
    "MessagingEvent",
    "Participant",
    "PluginLoader",
    "PostbackHandler",
    "UserStore",
    "WebhookModel",
]
