"""Core domain models for clients, requests, matches and offers.

This module defines the data structures used throughout the application:
- Client: one searcher (or owner/broker) record keyed by phone number
- PropertyRequest: a standing search request held by a client
- MatchRecord: an offer that was sent to a client, with interaction flags
- Offer / OfferMeta: an inbound published listing
- Requirement: the normalized criteria used by search and similarity scoring
- SearchResult: one scored fan-out result

Persisted keys keep their historical camelCase names (``requestStatus``,
``matchHistory`` ...) through aliases, so documents written by older bot
processes load unchanged. Unknown keys are preserved on round trip.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from property_matcher.utils.timestamps import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

_PERSISTED = ConfigDict(populate_by_name=True, extra="allow", use_enum_values=False)


class Role(str, Enum):
    """Client role, stored in Arabic."""

    SEARCHER = "باحث"
    OWNER = "مالك"
    INVESTOR = "مستثمر"
    BROKER = "وسيط"


_ROLE_ALIASES = {
    "searcher": Role.SEARCHER,
    "owner": Role.OWNER,
    "investor": Role.INVESTOR,
    "broker": Role.BROKER,
}


class ConversationState(str, Enum):
    """Conversation progress, advanced by the chat flow."""

    INITIAL = "initial"
    AWAITING_NAME = "awaiting_name"
    AWAITING_ROLE = "awaiting_role"
    AWAITING_REQUIREMENTS = "awaiting_requirements"
    COMPLETED = "completed"


class RequestStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserResponse(str, Enum):
    """How a client reacted to a match notification."""

    OPENED = "opened"
    CLICKED = "clicked"
    CONTACTED = "contacted"
    REJECTED = "rejected"
    IGNORED = "ignored"


def _to_number(value: Any) -> Optional[float]:
    """Coerce a persisted or inbound number; anything unusable is unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("٬", "").strip()
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _to_positive_number(value: Any) -> Optional[float]:
    number = _to_number(value)
    if number is None or number <= 0:
        return None
    return number


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("rendered")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _to_name_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [n.strip() for n in value if isinstance(n, str) and n.strip()]


class PropertyRequest(BaseModel):
    """A standing search request.

    Invariant: a client holds at most one active request per canonical
    property type (enforced by ``ClientStore.add_or_update_request``).
    """

    id: str = Field(..., description="Request id, e.g. req_1730728800000_a1b2")
    property_type: Optional[str] = Field(None, alias="propertyType")
    sub_category: Optional[str] = Field(None, alias="subCategory")
    purpose: Optional[str] = Field(None, description="شراء / بيع / إيجار")
    price_min: Optional[float] = Field(None, alias="priceMin")
    price_max: Optional[float] = Field(None, alias="priceMax")
    area_min: Optional[float] = Field(None, alias="areaMin")
    area_max: Optional[float] = Field(None, alias="areaMax")
    neighborhoods: List[str] = Field(default_factory=list)
    contact_number: Optional[str] = Field(None, alias="contactNumber")
    additional_specs: Optional[Any] = Field(None, alias="additionalSpecs")
    status: RequestStatus = Field(RequestStatus.ACTIVE)
    created_at: Optional[datetime] = Field(default_factory=utc_now, alias="createdAt")
    updated_at: Optional[datetime] = Field(default_factory=utc_now, alias="updatedAt")

    model_config = _PERSISTED

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("request id cannot be empty")
        return str(v).strip()

    @field_validator("property_type", "sub_category", "purpose", "contact_number", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("price_min", "price_max", "area_min", "area_max", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return _to_number(v)

    @field_validator("neighborhoods", mode="before")
    @classmethod
    def coerce_neighborhoods(cls, v: Any) -> List[str]:
        return _to_name_list(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> RequestStatus:
        return RequestStatus.INACTIVE if v == RequestStatus.INACTIVE.value else RequestStatus.ACTIVE

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_serializer("created_at", "updated_at", when_used="json-unless-none")
    def serialize_times(self, v: datetime) -> str:
        return format_timestamp(v)

    @property
    def is_active(self) -> bool:
        return self.status == RequestStatus.ACTIVE


class MatchRecord(BaseModel):
    """An offer that was delivered to a client.

    At most one record per offer id per client; this is the only
    duplicate-suppression mechanism.
    """

    offer_id: str = Field(..., alias="offerId")
    offer_title: str = Field("عقار", alias="offerTitle")
    offer_link: Optional[str] = Field(None, alias="offerLink")
    similarity_score: Optional[int] = Field(None, alias="similarityScore")
    match_quality: Optional[str] = Field(None, alias="matchQuality")
    sent_at: Optional[datetime] = Field(default_factory=utc_now, alias="sentAt")
    user_response: Optional[UserResponse] = Field(None, alias="userResponse")
    opened: bool = False
    clicked: bool = False
    contacted: bool = False
    rejected: bool = False
    interaction_at: Optional[datetime] = Field(None, alias="interactionAt")

    model_config = _PERSISTED

    @field_validator("offer_id", mode="before")
    @classmethod
    def coerce_offer_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("offerId cannot be empty")
        return str(v).strip()

    @field_validator("offer_title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> str:
        return _to_text(v) or "عقار"

    @field_validator("similarity_score", mode="before")
    @classmethod
    def coerce_score(cls, v: Any) -> Optional[int]:
        number = _to_number(v)
        return None if number is None else int(round(number))

    @field_validator("user_response", mode="before")
    @classmethod
    def coerce_response(cls, v: Any) -> Optional[UserResponse]:
        try:
            return UserResponse(v) if v else None
        except ValueError:
            return None

    @field_validator("sent_at", "interaction_at", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_serializer("sent_at", "interaction_at", when_used="json-unless-none")
    def serialize_times(self, v: datetime) -> str:
        return format_timestamp(v)


class Client(BaseModel):
    """A client record, keyed by normalized phone number.

    Legacy records carry a single ``requirements`` object instead of a
    ``requests`` list; they are read as one request with id
    ``req_legacy_<phone>``. Request entries that fail validation are dropped
    with a warning rather than failing the whole record.
    """

    phone_number: str = Field(..., alias="phoneNumber")
    name: Optional[str] = None
    role: Optional[Role] = None
    state: ConversationState = ConversationState.INITIAL
    requirements: Optional[Dict[str, Any]] = None
    requests: List[PropertyRequest] = Field(default_factory=list)
    request_status: RequestStatus = Field(RequestStatus.ACTIVE, alias="requestStatus")
    request_deactivated_at: Optional[datetime] = Field(None, alias="requestDeactivatedAt")
    request_deactivation_reason: Optional[str] = Field(None, alias="requestDeactivationReason")
    match_history: List[MatchRecord] = Field(default_factory=list, alias="matchHistory")
    last_notification_at: Optional[datetime] = Field(None, alias="lastNotificationAt")
    is_protected: bool = Field(True, alias="isProtected")
    manually_added: bool = Field(True, alias="manuallyAdded")
    created_at: Optional[datetime] = Field(default_factory=utc_now, alias="createdAt")
    updated_at: Optional[datetime] = Field(default_factory=utc_now, alias="updatedAt")
    last_message_at: Optional[datetime] = Field(default_factory=utc_now, alias="lastMessageAt")

    model_config = _PERSISTED

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_requirements(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        requests = data.get("requests")
        legacy = data.get("requirements")
        if isinstance(requests, list) or not isinstance(legacy, dict):
            return data
        if not legacy.get("propertyType"):
            return data

        phone = data.get("phoneNumber") or data.get("phone_number") or ""
        migrated = {
            **legacy,
            "id": legacy.get("id") or f"req_legacy_{phone}",
            "createdAt": legacy.get("createdAt") or data.get("createdAt"),
            "updatedAt": legacy.get("updatedAt") or data.get("updatedAt"),
            "status": data.get("requestStatus") or RequestStatus.ACTIVE.value,
        }
        return {**data, "requests": [migrated]}

    @field_validator("phone_number", mode="before")
    @classmethod
    def coerce_phone(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("phoneNumber cannot be empty")
        return str(v).strip()

    @field_validator("name", "request_deactivation_reason", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, v: Any) -> Optional[Role]:
        if not v:
            return None
        if isinstance(v, Role):
            return v
        try:
            return Role(str(v).strip())
        except ValueError:
            return _ROLE_ALIASES.get(str(v).strip().lower())

    @field_validator("state", mode="before")
    @classmethod
    def coerce_state(cls, v: Any) -> ConversationState:
        try:
            return ConversationState(v)
        except ValueError:
            return ConversationState.INITIAL

    @field_validator("request_status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> RequestStatus:
        return RequestStatus.INACTIVE if v == RequestStatus.INACTIVE.value else RequestStatus.ACTIVE

    @field_validator("requirements", mode="before")
    @classmethod
    def coerce_requirements(cls, v: Any) -> Optional[Dict[str, Any]]:
        return v if isinstance(v, dict) else None

    @field_validator("requests", mode="before")
    @classmethod
    def drop_malformed_requests(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        kept = []
        for entry in v:
            if isinstance(entry, PropertyRequest):
                kept.append(entry)
                continue
            try:
                kept.append(PropertyRequest.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "Dropping malformed request entry",
                    extra={
                        "event": "domain.request.malformed",
                        "entry": entry,
                        "error": str(e),
                    },
                )
        return kept

    @field_validator("match_history", mode="before")
    @classmethod
    def drop_malformed_matches(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        kept = []
        for entry in v:
            if isinstance(entry, MatchRecord):
                kept.append(entry)
                continue
            try:
                kept.append(MatchRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "Dropping malformed match record",
                    extra={"event": "domain.match.malformed", "error": str(e)},
                )
        return kept

    @field_validator("is_protected", "manually_added", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator(
        "request_deactivated_at",
        "last_notification_at",
        "created_at",
        "updated_at",
        "last_message_at",
        mode="before",
    )
    @classmethod
    def parse_times(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_serializer(
        "request_deactivated_at",
        "last_notification_at",
        "created_at",
        "updated_at",
        "last_message_at",
        when_used="json-unless-none",
    )
    def serialize_times(self, v: datetime) -> str:
        return format_timestamp(v)

    def matched_offer_ids(self) -> FrozenSet[str]:
        """Offer ids already delivered to this client, for O(1) duplicate checks."""
        return frozenset(m.offer_id for m in self.match_history)

    def find_match(self, offer_id: str) -> Optional[MatchRecord]:
        offer_id = str(offer_id)
        for match in self.match_history:
            if match.offer_id == offer_id:
                return match
        return None

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted (camelCase, JSON-safe) layout."""
        return self.model_dump(by_alias=True, mode="json")


_META_ALIASES = {
    "price": ("price_amount", "price"),
    "area": ("arc_space", "area", "space"),
    "neighborhood": ("location", "neighborhood", "district"),
    "city": ("City", "city"),
    "category": ("arc_category", "parent_catt", "category", "property_type"),
    "sub_category": ("sub_catt", "arc_subcategory", "subcategory", "sub_category"),
    "purpose": ("offer_type", "order_type", "purpose"),
    "price_text": ("price_text",),
    "area_text": ("area_text",),
}


class OfferMeta(BaseModel):
    """Offer metadata bag.

    Inbound offers use several spellings for the same field; the first
    non-empty one wins. Missing or non-positive numbers are unknown (None),
    never zero.
    """

    category: Optional[str] = None
    sub_category: Optional[str] = None
    price: Optional[float] = None
    price_text: Optional[str] = None
    area: Optional[float] = None
    area_text: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    purpose: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def resolve_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        resolved = dict(data)
        for field_name, keys in _META_ALIASES.items():
            value = None
            for key in keys:
                candidate = data.get(key)
                if candidate not in (None, "", 0):
                    value = candidate
                    break
            resolved[field_name] = value
        return resolved

    @field_validator("price", "area", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return _to_positive_number(v)

    @field_validator(
        "category", "sub_category", "price_text", "area_text", "neighborhood", "city", "purpose",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @property
    def location_text(self) -> str:
        """Neighborhood and city joined, as shown to users."""
        return " ".join(part for part in (self.neighborhood, self.city) if part)


class Offer(BaseModel):
    """A published property listing."""

    id: str
    title: str = ""
    link: Optional[str] = None
    meta: OfferMeta = Field(default_factory=OfferMeta)

    model_config = ConfigDict(extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("offer id cannot be empty")
        return str(v).strip()

    @field_validator("title", mode="before")
    @classmethod
    def coerce_title(cls, v: Any) -> str:
        return _to_text(v) or ""

    @field_validator("link", mode="before")
    @classmethod
    def coerce_link(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("meta", mode="before")
    @classmethod
    def default_meta(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def location(self) -> Optional[str]:
        """Neighborhood, falling back to the city."""
        return self.meta.neighborhood or self.meta.city


class Requirement(BaseModel):
    """Normalized criteria shared by search fan-out and similarity scoring."""

    property_type: Optional[str] = None
    sub_category: Optional[str] = None
    purpose: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None
    neighborhoods: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("price_min", "price_max", "area_min", "area_max", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return _to_number(v)

    @field_validator("property_type", "sub_category", "purpose", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("neighborhoods", mode="before")
    @classmethod
    def coerce_neighborhoods(cls, v: Any) -> List[str]:
        return _to_name_list(v)

    @classmethod
    def from_request(cls, request: PropertyRequest) -> "Requirement":
        return cls(
            property_type=request.property_type,
            sub_category=request.sub_category,
            purpose=request.purpose,
            price_min=request.price_min,
            price_max=request.price_max,
            area_min=request.area_min,
            area_max=request.area_max,
            neighborhoods=list(request.neighborhoods),
        )

    @property
    def is_rent(self) -> bool:
        return bool(self.purpose) and "إيجار" in self.purpose


class SearchResult(BaseModel):
    """One fan-out result with its relevance annotation."""

    offer: Offer
    is_fallback: bool = False
    fallback_reason: Optional[str] = None
    relevance_score: Optional[int] = None

    @property
    def id(self) -> str:
        return self.offer.id
