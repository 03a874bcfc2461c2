from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from live_event_scrapers.data_quality.cleaning import dedupe_preserving_order, normalize_whitespace

# Trust tiers, lower is more trusted.
TIER_LINKED_DATA = 1
TIER_EMBEDDED_STATE = 2
TIER_DOM_HEURISTIC = 3

# Fields whose values are unioned across tiers instead of overwritten.
COLLECTION_FIELDS = ("genres", "artists", "promoters")
MAPPING_FIELDS = ("social_links",)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingRecord(BaseModel):
    """One entry discovered on a browse/listing page. Never mutated once emitted."""
    identity: str = Field(..., min_length=1, description="Site-scoped id or stable URL.")
    title: Optional[str] = None
    venue: Optional[str] = None
    date: Optional[str] = Field(None, description="Free text or ISO date.")
    time: Optional[str] = None
    price: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    detail_url: Optional[str] = Field(None, description="Absolute URL of the entity's own page.")
    source_site: Optional[str] = None
    source_tier: int = Field(TIER_DOM_HEURISTIC, ge=TIER_LINKED_DATA, le=TIER_DOM_HEURISTIC)
    scraped_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    @field_validator('title', 'venue', 'date', 'time', 'price', 'image_url', 'detail_url')
    @classmethod
    def strip_string_fields(cls, v: Optional[str]) -> Optional[str]:
        return normalize_whitespace(v) if isinstance(v, str) else v

    @field_validator('genres', 'artists')
    @classmethod
    def unique_in_order(cls, v: List[str]) -> List[str]:
        return dedupe_preserving_order(v)


class TicketOffer(BaseModel):
    name: Optional[str] = None
    price: Optional[Union[float, str]] = None
    currency: Optional[str] = None
    availability: Optional[str] = None
    url: Optional[str] = None
    valid_from: Optional[str] = None
    valid_through: Optional[str] = None


class GeoPoint(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator('latitude')
    @classmethod
    def latitude_must_be_valid(cls, v):
        if v is not None and not (-90 <= v <= 90):
            raise ValueError('Latitude must be between -90 and 90')
        return v

    @field_validator('longitude')
    @classmethod
    def longitude_must_be_valid(cls, v):
        if v is not None and not (-180 <= v <= 180):
            raise ValueError('Longitude must be between -180 and 180')
        return v


class DetailRecord(BaseModel):
    """Attributes recovered from an entity's own detail page after reconciliation."""
    title: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = None
    lineup: Optional[str] = None
    artists: List[str] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    promoters: List[str] = Field(default_factory=list)
    age_restriction: Optional[str] = None
    event_type: Optional[str] = None
    ticket_offers: List[TicketOffer] = Field(default_factory=list)
    cost: Optional[str] = None
    image_url: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    geo: Optional[GeoPoint] = None
    organizer: Optional[str] = None
    door_time: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)
    raw_evidence: Dict[str, str] = Field(default_factory=dict, description="Field name -> strategy that supplied it.")

    @field_validator('artists', 'genres', 'promoters')
    @classmethod
    def unique_in_order(cls, v: List[str]) -> List[str]:
        return dedupe_preserving_order(v)


class PartialRecord(BaseModel):
    """The output of one extraction strategy against one page."""
    strategy: str
    tier: int = Field(..., ge=TIER_LINKED_DATA, le=TIER_DOM_HEURISTIC)
    values: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def is_empty(self) -> bool:
        return not any(v not in (None, "", [], {}) for v in self.values.values())


class EnrichedRecord(BaseModel):
    """A listing record combined with what its detail page yielded."""
    identity: str
    title: Optional[str] = None
    venue: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    price: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    detail_url: Optional[str] = None
    source_site: Optional[str] = None
    source_tier: int = TIER_DOM_HEURISTIC
    scraped_at: Optional[datetime] = None

    detail: Optional[DetailRecord] = None
    field_sources: Dict[str, str] = Field(default_factory=dict, description="Listing fields replaced or filled from the detail page.")
    snapshot_path: Optional[str] = None
    enrichment_error: Optional[str] = None
    enriched_at: datetime = Field(default_factory=_utcnow)
