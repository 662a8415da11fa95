"""
HTTP-facing webhook components.
"""

from .webhook import ACK_BODY, FORBIDDEN_BODY, WebhookGateway

__all__ = ["ACK_BODY", "FORBIDDEN_BODY", "WebhookGateway"]
