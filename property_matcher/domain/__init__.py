"""Domain models for the property matcher."""

from .models import (
    Client,
    ConversationState,
    MatchRecord,
    Offer,
    OfferMeta,
    PropertyRequest,
    RequestStatus,
    Requirement,
    Role,
    SearchResult,
    UserResponse,
)

__all__ = [
    "Client",
    "PropertyRequest",
    "MatchRecord",
    "Offer",
    "OfferMeta",
    "Requirement",
    "SearchResult",
    "Role",
    "ConversationState",
    "RequestStatus",
    "UserResponse",
]
