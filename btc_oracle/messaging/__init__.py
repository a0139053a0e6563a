"""Chat channel used by the proof responder."""

from .interface import MessageTransport
from .log import LoggingMessenger
from .webhook import WebhookMessenger

__all__ = ["LoggingMessenger", "MessageTransport", "WebhookMessenger"]
