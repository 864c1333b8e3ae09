from __future__ import annotations

from datetime import datetime, timezone

from margarita.core.models import Listing, ListingFilters


def matches_filters(listing: Listing, filters: ListingFilters) -> bool:
    if filters.types and listing.property_type not in filters.types:
        return False
    if filters.statuses and listing.status not in filters.statuses:
        return False
    if filters.zones:
        wanted = {zone.strip().lower() for zone in filters.zones}
        if (listing.zone or "").strip().lower() not in wanted:
            return False
    if filters.only_with_price and listing.price_usd is None:
        return False
    # Range filters only constrain listings that carry the attribute.
    if listing.price_usd is not None:
        if filters.min_price is not None and listing.price_usd < filters.min_price:
            return False
        if filters.max_price is not None and listing.price_usd > filters.max_price:
            return False
    if listing.bedrooms is not None:
        if filters.min_bedrooms is not None and listing.bedrooms < filters.min_bedrooms:
            return False
        if filters.max_bedrooms is not None and listing.bedrooms > filters.max_bedrooms:
            return False
    if listing.area_m2 is not None:
        if filters.min_area is not None and listing.area_m2 < filters.min_area:
            return False
        if filters.max_area is not None and listing.area_m2 > filters.max_area:
            return False
    if filters.min_quality_score is not None and listing.quality_score < filters.min_quality_score:
        return False
    return True


def apply_filters(listings: list[Listing], filters: ListingFilters) -> list[Listing]:
    return [listing for listing in listings if matches_filters(listing, filters)]


SORT_KEYS = ("newest", "oldest", "price_asc", "price_desc")


def sort_listings(listings: list[Listing], sort_by: str = "newest") -> list[Listing]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by!r}")
    if sort_by in ("price_asc", "price_desc"):
        return sorted(listings, key=lambda listing: listing.price_usd or 0, reverse=sort_by == "price_desc")
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return sorted(
        listings,
        key=lambda listing: _as_utc(listing.posted_at) if listing.posted_at else epoch,
        reverse=sort_by == "newest",
    )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
