from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from margarita.core.models import ExtractedListing, Listing, RawPost


def build_listing_hash(source: str, external_id: str | None, url: str | None, caption: str) -> str:
    stable = {
        "source": source,
        "external_id": external_id,
        "url": (url or "").strip().lower(),
        "caption": caption.strip(),
    }
    serialized = json.dumps(stable, sort_keys=True, ensure_ascii=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def build_listing(post: RawPost, extracted: ExtractedListing, now: datetime | None = None) -> Listing:
    """
    Combine a raw post with its extraction. Coordinates are attached later by the resolver.
    """
    timestamp = now or datetime.now(timezone.utc)
    listing_hash = build_listing_hash(post.source, post.external_id, post.source_url, post.caption)
    return Listing(
        id=f"{post.source}-{listing_hash[:16]}",
        source=post.source,
        source_url=post.source_url,
        caption=post.caption,
        property_type=extracted.property_type,
        zone=extracted.zone,
        price_usd=extracted.price_usd,
        price_per_m2=extracted.price_per_m2,
        bedrooms=extracted.bedrooms,
        bathrooms=extracted.bathrooms,
        area_m2=extracted.area_m2,
        parking_spaces=extracted.parking_spaces,
        address=extracted.address,
        title=extracted.title,
        features=list(extracted.features),
        quality_score=extracted.quality_score,
        ai_confidence=extracted.ai_confidence,
        status=extracted.status,
        posted_at=post.posted_at or timestamp,
        updated_at=timestamp,
        external_id=post.external_id,
        thumbnail_url=post.thumbnail_url,
        media_urls=list(post.media_urls),
        owner_handle=post.owner_handle,
    )


def listing_to_record(listing: Listing) -> dict[str, Any]:
    area_m2 = listing.area_m2 if listing.area_m2 is not None and float(listing.area_m2) > 0 else None
    return {
        "id": listing.id,
        "source": listing.source,
        "source_url": listing.source_url,
        "external_id": listing.external_id,
        "caption": listing.caption,
        "title": listing.title,
        "property_type": listing.property_type,
        "price_usd": listing.price_usd,
        "price_per_m2": listing.price_per_m2,
        "bedrooms": listing.bedrooms,
        "bathrooms": listing.bathrooms,
        "area_m2": area_m2,
        "parking_spaces": listing.parking_spaces,
        "zone": listing.zone,
        "address": listing.address,
        "lat": listing.lat,
        "lng": listing.lng,
        "features": list(listing.features),
        "quality_score": listing.quality_score,
        "ai_confidence": listing.ai_confidence,
        "status": listing.status,
        "approval_status": listing.approval_status,
        "posted_at": listing.posted_at.isoformat() if listing.posted_at else None,
        "updated_at": listing.updated_at.isoformat() if listing.updated_at else None,
        "thumbnail_url": listing.thumbnail_url,
        "media_urls": list(listing.media_urls),
        "owner_handle": listing.owner_handle,
    }


def record_to_listing(record: dict[str, Any]) -> Listing | None:
    listing_id = record.get("id")
    if not listing_id:
        return None
    return Listing(
        id=str(listing_id),
        source=str(record.get("source") or "unknown"),
        source_url=record.get("source_url") or None,
        caption=str(record.get("caption") or ""),
        property_type=str(record.get("property_type") or "house"),
        zone=record.get("zone") or None,
        lat=_safe_float(record.get("lat")),
        lng=_safe_float(record.get("lng")),
        price_usd=_safe_float(record.get("price_usd")),
        price_per_m2=_safe_float(record.get("price_per_m2")),
        bedrooms=_safe_int(record.get("bedrooms")),
        bathrooms=_safe_int(record.get("bathrooms")),
        area_m2=_safe_float(record.get("area_m2")),
        parking_spaces=_safe_int(record.get("parking_spaces")),
        address=record.get("address"),
        title=record.get("title"),
        features=[str(item) for item in record.get("features") or []],
        quality_score=_safe_int(record.get("quality_score")) or 0,
        ai_confidence=_safe_int(record.get("ai_confidence")) or 0,
        status=str(record.get("status") or "available"),
        approval_status=str(record.get("approval_status") or "pending"),
        posted_at=parse_datetime(record.get("posted_at")),
        updated_at=parse_datetime(record.get("updated_at")),
        external_id=record.get("external_id"),
        thumbnail_url=record.get("thumbnail_url"),
        media_urls=[str(item) for item in record.get("media_urls") or []],
        owner_handle=record.get("owner_handle"),
    )


def parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _safe_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
