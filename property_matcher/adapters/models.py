"""Request and response shapes of the listing search endpoint."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _number(value: Any) -> Optional[float]:
    """Parse an endpoint number; absent, unparseable or non-positive is unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class SearchParams(BaseModel):
    """Query parameters of one search call. None means "not sent"."""

    property_type: Optional[str] = None
    preferred_area: Optional[str] = None
    purpose: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None
    page: int = Field(1, ge=1)

    model_config = ConfigDict(frozen=True)

    def to_query(self) -> Dict[str, Any]:
        """Query-string dict with unset values dropped and whole numbers as ints.

        Example:
            >>> SearchParams(property_type="شقة", max_price=500000.0).to_query()
            {'property_type': 'شقة', 'max_price': 500000, 'page': 1}
        """
        query: Dict[str, Any] = {}
        for key, value in self.model_dump().items():
            if value is None or value == "":
                continue
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            query[key] = value
        return query

    def replace(self, **changes: Any) -> "SearchParams":
        return self.model_copy(update=changes)


class SearchPost(BaseModel):
    """One listing returned by the endpoint.

    Any absent field is unknown (None), never zero.
    """

    id: str
    title: str = ""
    link: Optional[str] = None
    price_amount: Optional[float] = None
    price_text: Optional[str] = None
    space: Optional[float] = None
    space_text: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    property_type: Optional[str] = None
    purpose: Optional[str] = None
    sub_catt: Optional[str] = None
    arc_subcategory: Optional[str] = None
    thumbnail: Optional[str] = None
    date: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def split_raw_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        resolved = dict(data)
        if resolved.get("id") in (None, "") and resolved.get("ID") not in (None, ""):
            resolved["id"] = resolved["ID"]
        if isinstance(resolved.get("title"), dict):
            resolved["title"] = resolved["title"].get("rendered", "")
        # Keep the endpoint's own wording for display
        if _number(resolved.get("price_amount")) is not None:
            resolved.setdefault("price_text", str(resolved["price_amount"]))
        if _number(resolved.get("space")) is not None:
            resolved.setdefault("space_text", str(resolved["space"]))
        return resolved

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("post id is required")
        return str(v).strip()

    @field_validator("price_amount", "space", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return _number(v)

    @field_validator(
        "link", "city", "location", "property_type", "purpose", "sub_catt",
        "arc_subcategory", "thumbnail", "date", "price_text", "space_text",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""


class SearchResponse(BaseModel):
    """Endpoint response: ``{total, count, posts[]}``."""

    total: int = 0
    count: int = 0
    posts: List[SearchPost] = Field(default_factory=list)

    @field_validator("total", "count", mode="before")
    @classmethod
    def coerce_count(cls, v: Any) -> int:
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0

    @classmethod
    def empty(cls) -> "SearchResponse":
        return cls()
