from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from margarita.core.models import Listing, MissingCoordinatesError, Zone
from margarita.core.settings import RecommendationWeights


LEVEL_RANK = {"HIGH": 3, "MEDIUM": 2, "LOW": 1}
LEVEL_LABELS = {"HIGH": "Recommended", "MEDIUM": "Average", "LOW": "Evaluate"}


@dataclass(slots=True, frozen=True)
class MarketBaseline:
    avg_price_per_m2: float
    avg_quality: float


def group_listings_by_zone(listings: list[Listing]) -> dict[str, list[Listing]]:
    groups: dict[str, list[Listing]] = defaultdict(list)
    for listing in listings:
        zone = (listing.zone or "").strip()
        if not zone:
            continue
        groups[zone].append(listing)
    return dict(groups)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def build_zone(name: str, listings: list[Listing]) -> Zone:
    missing = [listing.id for listing in listings if not listing.has_coordinates]
    if missing:
        raise MissingCoordinatesError(f"Listings without coordinates in zone {name!r}: {missing}")

    return Zone(
        name=name,
        center_lat=_mean([float(listing.lat) for listing in listings]),
        center_lng=_mean([float(listing.lng) for listing in listings]),
        listing_count=len(listings),
        avg_price=_mean([listing.price_usd for listing in listings if listing.price_usd is not None]),
        avg_price_per_m2=_mean([listing.price_per_m2 for listing in listings if listing.price_per_m2 is not None]),
        quality_score=_mean([float(listing.quality_score) for listing in listings]),
    )


def compute_market_baseline(zones: list[Zone]) -> MarketBaseline:
    return MarketBaseline(
        avg_price_per_m2=_mean([zone.avg_price_per_m2 for zone in zones]),
        avg_quality=_mean([zone.quality_score for zone in zones]),
    )


def price_score(avg_price_per_m2: float, market_avg_price_per_m2: float) -> float:
    if avg_price_per_m2 <= 0:
        return 40.0
    if avg_price_per_m2 < market_avg_price_per_m2 * 0.9:
        return 100.0
    if avg_price_per_m2 <= market_avg_price_per_m2 * 1.1:
        return 70.0
    return 40.0


def recommendation_for(
    zone: Zone,
    baseline: MarketBaseline,
    weights: RecommendationWeights | None = None,
) -> tuple[str, float]:
    weights = weights or RecommendationWeights()
    density = min(100.0, zone.listing_count / weights.density_saturation * 100)
    composite = (
        price_score(zone.avg_price_per_m2, baseline.avg_price_per_m2) * weights.price
        + zone.quality_score * weights.quality
        + density * weights.density
    )
    if composite >= weights.high_threshold:
        return "HIGH", composite
    if composite >= weights.medium_threshold:
        return "MEDIUM", composite
    return "LOW", composite


def analyze_zones(listings: list[Listing], weights: RecommendationWeights | None = None) -> list[Zone]:
    """
    Rebuild every zone from scratch: per-zone stats first, then tiers against the market baseline.
    """
    zones = [build_zone(name, members) for name, members in group_listings_by_zone(listings).items()]

    baseline = compute_market_baseline(zones)
    for zone in zones:
        zone.recommendation, zone.composite_score = recommendation_for(zone, baseline, weights)

    zones.sort(key=lambda zone: (-LEVEL_RANK[zone.recommendation], -zone.quality_score))
    return zones


def get_top_zones(zones: list[Zone], limit: int = 5) -> list[Zone]:
    return [zone for zone in zones if zone.recommendation == "HIGH"][:limit]


def find_zone(zones: list[Zone], zone_name: str) -> Zone | None:
    needle = zone_name.strip().lower()
    for zone in zones:
        if zone.name.lower() == needle:
            return zone
    return None


def zone_summary(zone: Zone) -> str:
    parts: list[str] = []
    if zone.avg_price > 0:
        parts.append(f"Avg price: ${zone.avg_price:,.0f}")
    if zone.avg_price_per_m2 > 0:
        parts.append(f"${zone.avg_price_per_m2:,.0f}/m²")
    parts.append(f"{zone.listing_count} {'listing' if zone.listing_count == 1 else 'listings'}")
    parts.append(f"Quality: {round(zone.quality_score)}/100")
    parts.append(f"{zone.recommendation} ({LEVEL_LABELS[zone.recommendation]})")
    return " | ".join(parts)
