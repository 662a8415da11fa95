"""
pagebot - resilient Messenger webhook receiver

Acknowledges platform webhook callbacks immediately, fans the events out to
message/postback/comment handlers, and keeps running even when its settings
file is missing, half filled, or corrupted.
"""

__version__ = "3.0.0"

from pagebot.app import create_app
from pagebot.core.config import ConfigSnapshot, ConfigStore
from pagebot.core.contracts import HandlerRegistry
from pagebot.core.status import RuntimeStatusSink

__all__ = [
    "ConfigSnapshot",
    "ConfigStore",
    "HandlerRegistry",
    "RuntimeStatusSink",
    "create_app",
]
