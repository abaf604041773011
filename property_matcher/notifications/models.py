"""Data models and exceptions for match notifications.

The physical transport (chat bot, SMS gateway) lives outside this package
and is reached through the MessageSender protocol.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when the match message template cannot be rendered."""

    pass


class DeliveryError(NotificationError):
    """Raised by a MessageSender when a message was not delivered."""

    pass


class MessageSender(Protocol):
    """Outbound message transport."""

    def send(self, phone_number: str, text: str) -> None:
        """Deliver text to a phone number.

        Raises:
            DeliveryError: If delivery was not confirmed
        """
        ...


@dataclass
class DispatchResult:
    """Result of attempting to notify one client about one offer.

    Attributes:
        phone_number: Client the message was for
        offer_id: Offer the message was about
        status: Outcome (sent, duplicate, dropped, failed)
        error: Error message when the send or the bookkeeping failed
        recorded: True once the match was written to the client's history
    """

    phone_number: str
    offer_id: str
    status: str  # "sent", "duplicate", "dropped", "failed"
    error: Optional[str] = None
    recorded: bool = False

    def is_success(self) -> bool:
        return self.status == "sent"
