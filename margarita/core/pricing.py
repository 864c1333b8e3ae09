from __future__ import annotations

import logging
from dataclasses import dataclass

from margarita.core.models import Listing, PriceEstimate
from margarita.core.settings import PipelineSettings, SimilarityWeights


LOGGER = logging.getLogger(__name__)

INDICATOR_LABELS = {
    "below_market": "Good price",
    "fair": "Fair price",
    "above_market": "Overpriced",
}


@dataclass(slots=True)
class Comparable:
    listing: Listing
    similarity: float


def _same_text(left: str | None, right: str | None) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


def calculate_similarity(left: Listing, right: Listing, weights: SimilarityWeights | None = None) -> float:
    """
    Weighted similarity in [0, 1]. An attribute missing on either side drops
    out of both the score and the denominator.
    """
    weights = weights or SimilarityWeights()
    score = 0.0
    total = 0.0

    if left.property_type and right.property_type:
        total += weights.property_type
        if left.property_type == right.property_type:
            score += weights.property_type

    if left.zone and right.zone:
        total += weights.zone
        if _same_text(left.zone, right.zone):
            score += weights.zone

    if left.area_m2 and right.area_m2:
        total += weights.area
        area_diff = abs(left.area_m2 - right.area_m2) / max(left.area_m2, right.area_m2)
        score += max(0.0, 1 - area_diff) * weights.area

    if left.bedrooms is not None and right.bedrooms is not None:
        total += weights.bedrooms
        if left.bedrooms == right.bedrooms:
            score += weights.bedrooms
        elif abs(left.bedrooms - right.bedrooms) == 1:
            score += weights.bedrooms / 2

    if left.bathrooms is not None and right.bathrooms is not None:
        total += weights.bathrooms
        if left.bathrooms == right.bathrooms:
            score += weights.bathrooms

    return score / total if total > 0 else 0.0


def _is_same_listing(left: Listing, right: Listing) -> bool:
    return left is right or (bool(left.id) and left.id == right.id)


def find_comparables(
    listing: Listing,
    corpus: list[Listing],
    settings: PipelineSettings | None = None,
) -> list[Comparable]:
    settings = settings or PipelineSettings()
    comparables: list[Comparable] = []
    for other in corpus:
        if _is_same_listing(listing, other) or other.price_usd is None:
            continue
        similarity = calculate_similarity(listing, other, settings.similarity)
        if similarity >= settings.min_comparable_similarity:
            comparables.append(Comparable(listing=other, similarity=similarity))

    comparables.sort(key=lambda comp: comp.similarity, reverse=True)
    return comparables[: settings.max_comparables]


def price_indicator(actual_price: float, estimated_price: float) -> str:
    if estimated_price == 0:
        # Nothing to judge against.
        return "fair"
    ratio = actual_price / estimated_price
    if ratio <= 0.90:
        return "below_market"
    if ratio >= 1.10:
        return "above_market"
    return "fair"


def price_indicator_label(indicator: str) -> str:
    return INDICATOR_LABELS.get(indicator, indicator)


def estimate_price(
    listing: Listing,
    corpus: list[Listing],
    settings: PipelineSettings | None = None,
) -> PriceEstimate | None:
    if not listing.property_type or not listing.zone:
        return None

    settings = settings or PipelineSettings()
    comparables = find_comparables(listing, corpus, settings)
    if not comparables:
        LOGGER.debug("No comparables for listing=%s", listing.id)
        return None

    total_weight = sum(comp.similarity for comp in comparables)
    if total_weight <= 0:
        return None
    estimated = sum(float(comp.listing.price_usd or 0) * comp.similarity for comp in comparables) / total_weight

    count_score = min(1.0, len(comparables) / settings.max_comparables)
    mean_similarity = total_weight / len(comparables)
    confidence = (count_score * 0.5 + mean_similarity * 0.5) * 100

    zone_peers = [
        other
        for other in corpus
        if not _is_same_listing(listing, other) and _same_text(other.zone, listing.zone) and other.price_usd is not None
    ]
    zonal_avg_price = (
        sum(float(other.price_usd or 0) for other in zone_peers) / len(zone_peers) if zone_peers else 0.0
    )
    peers_per_m2 = [other.price_per_m2 for other in zone_peers if other.price_per_m2 is not None]
    zonal_avg_price_per_m2 = sum(peers_per_m2) / len(peers_per_m2) if peers_per_m2 else 0.0

    indicator = price_indicator(listing.price_usd, estimated) if listing.price_usd is not None else "fair"

    return PriceEstimate(
        listing_id=listing.id,
        estimated_price=estimated,
        estimated_price_per_m2=estimated / listing.area_m2 if listing.area_m2 and estimated > 0 else 0.0,
        zonal_avg_price=zonal_avg_price,
        zonal_avg_price_per_m2=zonal_avg_price_per_m2,
        indicator=indicator,
        confidence=confidence,
        comparable_count=len(comparables),
    )


def estimate_prices(corpus: list[Listing], settings: PipelineSettings | None = None) -> dict[str, PriceEstimate]:
    estimates: dict[str, PriceEstimate] = {}
    for listing in corpus:
        estimate = estimate_price(listing, corpus, settings)
        if estimate is not None:
            estimates[listing.id] = estimate
    return estimates
