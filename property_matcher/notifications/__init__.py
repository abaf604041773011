"""Match notifications: message rendering and dispatch.

This module provides:
- NotificationDispatcher: renders, sends and records one match notification
- MessageRenderer: Jinja2 rendering of the match message
- build_message_context: template context for a MatchCandidate
- MessageSender: protocol implemented by the external transport
"""

from .dispatcher import NotificationDispatcher
from .models import (
    DeliveryError,
    DispatchResult,
    MessageSender,
    NotificationError,
    NotificationTemplateError,
)
from .payloads import build_message_context, match_reasons
from .templates import MessageRenderer

__all__ = [
    "NotificationDispatcher",
    "MessageRenderer",
    "MessageSender",
    "DispatchResult",
    "build_message_context",
    "match_reasons",
    "NotificationError",
    "NotificationTemplateError",
    "DeliveryError",
]
