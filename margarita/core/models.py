from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


PROPERTY_TYPES = ("house", "apartment", "land", "commercial")
LISTING_STATUSES = ("available", "sold", "reserved")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
RECOMMENDATION_LEVELS = ("HIGH", "MEDIUM", "LOW")
PRICE_INDICATORS = ("below_market", "fair", "above_market")
PROGRESS_STAGES = ("scraping", "extracting", "geocoding", "analyzing", "complete", "error")


class UnresolvedZoneError(LookupError):
    """Raised when a zone name cannot be placed and the reject policy is active."""


class MissingCoordinatesError(ValueError):
    """Raised when a listing reaches analytics without coordinates."""


@dataclass(slots=True, frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(slots=True, frozen=True)
class GazetteerEntry:
    name: str
    lat: float
    lng: float
    aliases: tuple[str, ...] = ()


@dataclass(slots=True)
class RawPost:
    caption: str
    source: str
    source_url: str | None = None
    external_id: str | None = None
    thumbnail_url: str | None = None
    media_urls: list[str] = field(default_factory=list)
    owner_handle: str | None = None
    posted_at: datetime | None = None
    location_name: str | None = None


@dataclass(slots=True)
class ExtractedListing:
    property_type: str  # house | apartment | land | commercial
    price_usd: float | None
    zone: str
    address: str
    title: str
    reason: str
    bedrooms: int | None = None
    bathrooms: int | None = None
    area_m2: float | None = None
    parking_spaces: int | None = None
    price_per_m2: float | None = None
    features: list[str] = field(default_factory=list)
    status: str = "available"  # available | sold | reserved
    quality_score: int = 50
    ai_confidence: int = 75
    is_valid: bool = True


@dataclass(slots=True)
class Listing:
    id: str
    source: str
    source_url: str | None
    caption: str
    property_type: str
    zone: str | None
    lat: float | None = None
    lng: float | None = None
    price_usd: float | None = None
    price_per_m2: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area_m2: float | None = None
    parking_spaces: int | None = None
    address: str | None = None
    title: str | None = None
    features: list[str] = field(default_factory=list)
    quality_score: int = 50
    ai_confidence: int = 75
    status: str = "available"
    approval_status: str = "pending"  # owned by moderation, never changed by the pipeline
    posted_at: datetime | None = None
    updated_at: datetime | None = None
    external_id: str | None = None
    thumbnail_url: str | None = None
    media_urls: list[str] = field(default_factory=list)
    owner_handle: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(slots=True)
class Zone:
    name: str
    center_lat: float
    center_lng: float
    listing_count: int
    avg_price: float
    avg_price_per_m2: float
    quality_score: float
    recommendation: str = "MEDIUM"  # HIGH | MEDIUM | LOW
    composite_score: float = 0.0


@dataclass(slots=True)
class PriceEstimate:
    listing_id: str
    estimated_price: float
    estimated_price_per_m2: float
    zonal_avg_price: float
    zonal_avg_price_per_m2: float
    indicator: str  # below_market | fair | above_market
    confidence: float
    comparable_count: int


@dataclass(slots=True)
class ProgressEvent:
    stage: str
    message: str
    progress: int
    listings_found: int | None = None


@dataclass(slots=True)
class ListingFilters:
    types: list[str] = field(default_factory=list)
    zones: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    min_price: float | None = None
    max_price: float | None = None
    min_bedrooms: int | None = None
    max_bedrooms: int | None = None
    min_area: float | None = None
    max_area: float | None = None
    min_quality_score: int | None = None
    only_with_price: bool = False
