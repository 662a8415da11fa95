"""
Core infrastructure for the webhook receiver.

Exposes the self-healing settings store, the webhook payload contracts,
the per-event dispatcher, and the runtime status slot.
"""

from .config import ConfigSnapshot, ConfigStore, deep_merge
from .contracts import (
    CommentRecord,
    Entry,
    HandlerRegistry,
    InboundPayload,
    MessagingEvent,
)
from .dispatcher import EventDispatcher
from .status import RuntimeStatusSink, StatusReport, build_status_report

__all__ = [
    "CommentRecord",
    "ConfigSnapshot",
    "ConfigStore",
    "Entry",
    "EventDispatcher",
    "HandlerRegistry",
    "InboundPayload",
    "MessagingEvent",
    "RuntimeStatusSink",
    "StatusReport",
    "build_status_report",
    "deep_merge",
]
