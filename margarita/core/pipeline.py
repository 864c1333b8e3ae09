from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from margarita.core.coordinates import CoordinateResolver
from margarita.core.dedupe import dedupe_batch, reconcile_batch
from margarita.core.extractor import extract_listing_with_reason
from margarita.core.gazetteer import is_within_bounds
from margarita.core.models import Coordinates, Listing, PriceEstimate, ProgressEvent, RawPost, UnresolvedZoneError, Zone
from margarita.core.normalize import build_listing, parse_datetime
from margarita.core.pricing import estimate_prices
from margarita.core.settings import PipelineSettings
from margarita.core.zones import analyze_zones


LOGGER = logging.getLogger(__name__)

REJECT_UNRESOLVED_ZONE = "unresolved_zone"

ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(slots=True)
class DiscoveryReport:
    received: int = 0
    malformed: int = 0
    extracted: int = 0
    rejected: Counter = field(default_factory=Counter)
    resolution_tiers: Counter = field(default_factory=Counter)
    batch_duplicates: int = 0
    inserted: int = 0
    skipped: int = 0
    status_updated: int = 0
    date_updated: int = 0
    repaired: int = 0
    excluded: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DiscoveryResult:
    listings: list[Listing]
    new_listings: list[Listing]
    zones: list[Zone]
    price_estimates: dict[str, PriceEstimate]
    report: DiscoveryReport


def coerce_raw_post(record: Any, default_source: str = "import") -> RawPost | None:
    """
    Accept a RawPost or a loose dict; anything without a usable caption is malformed.
    """
    if isinstance(record, RawPost):
        return record if isinstance(record.caption, str) and record.caption.strip() else None
    if not isinstance(record, dict):
        return None

    caption = record.get("caption")
    if not isinstance(caption, str) or not caption.strip():
        return None
    external_id = record.get("external_id") or record.get("id")
    return RawPost(
        caption=caption,
        source=str(record.get("source") or default_source),
        source_url=record.get("source_url") or record.get("url") or None,
        external_id=str(external_id) if external_id is not None else None,
        thumbnail_url=record.get("thumbnail_url") or None,
        media_urls=[str(url) for url in record.get("media_urls") or [] if url],
        owner_handle=record.get("owner_handle") or None,
        posted_at=parse_datetime(record.get("posted_at")),
        location_name=record.get("location_name") or None,
    )


def run_discovery(
    records: Iterable[Any],
    corpus: list[Listing] | None = None,
    *,
    resolver: CoordinateResolver | None = None,
    settings: PipelineSettings | None = None,
    on_progress: ProgressCallback | None = None,
    now: datetime | None = None,
) -> DiscoveryResult:
    """
    Run one batch through extraction, coordinate resolution, both dedupe passes and analytics.

    `corpus` is mutated in place: merged listings are appended and existing
    entries may have status, posted date or coordinates updated.
    """
    settings = settings or PipelineSettings()
    resolver = resolver or CoordinateResolver(settings=settings)
    corpus = corpus if corpus is not None else []
    timestamp = now or datetime.now(timezone.utc)
    report = DiscoveryReport()

    def emit(stage: str, message: str, progress: int, listings_found: int | None = None) -> None:
        LOGGER.info("Stage=%s progress=%s %s", stage, progress, message)
        if on_progress is None:
            return
        try:
            on_progress(ProgressEvent(stage=stage, message=message, progress=progress, listings_found=listings_found))
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Progress callback failed stage=%s: %s", stage, exc)

    try:
        records = list(records)
        report.received = len(records)
        emit("scraping", f"Received {report.received} posts", 10)

        posts: list[RawPost] = []
        for record in records:
            post = coerce_raw_post(record)
            if post is None:
                report.malformed += 1
                continue
            posts.append(post)

        emit("extracting", f"Extracting listings from {len(posts)} captions", 30)
        candidates = _extract_candidates(posts, report, timestamp)

        emit("geocoding", f"Resolving coordinates for {len(candidates)} listings", 50, len(candidates))
        located = _resolve_candidates(candidates, resolver, report)

        unique = dedupe_batch(located)
        report.batch_duplicates = len(located) - len(unique)
        merge = reconcile_batch(corpus, unique, price_tolerance=settings.dedupe_price_tolerance, now=timestamp)
        report.inserted = len(merge.inserted)
        report.skipped = merge.skipped
        report.status_updated = merge.status_updated
        report.date_updated = merge.date_updated

        emit("analyzing", f"Analyzing {len(corpus)} listings", 80, report.inserted)
        analyzable = _repair_coordinates(corpus, resolver, report)
        zones = analyze_zones(analyzable, settings.recommendation)
        estimates = estimate_prices(analyzable, settings)
    except Exception as exc:
        emit("error", f"Discovery failed: {exc}", 0)
        raise

    LOGGER.info(
        "Discovery received=%s malformed=%s extracted=%s rejected=%s inserted=%s skipped=%s errors=%s",
        report.received,
        report.malformed,
        report.extracted,
        sum(report.rejected.values()),
        report.inserted,
        report.skipped,
        len(report.errors),
    )
    emit("complete", f"Found {report.inserted} new listings", 100, report.inserted)
    return DiscoveryResult(
        listings=corpus,
        new_listings=list(merge.inserted),
        zones=zones,
        price_estimates=estimates,
        report=report,
    )


def _extract_candidates(posts: list[RawPost], report: DiscoveryReport, timestamp: datetime) -> list[Listing]:
    candidates: list[Listing] = []
    for post in posts:
        try:
            extracted, reason = extract_listing_with_reason(post.caption, zone_hint=post.location_name)
            if extracted is None:
                report.rejected[reason or "unknown"] += 1
                continue
            candidates.append(build_listing(post, extracted, now=timestamp))
            report.extracted += 1
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Extraction failed source_url=%s: %s", post.source_url, exc)
            report.errors.append(f"extract {post.source_url or post.external_id}: {exc}")
    return candidates


def _resolve_candidates(
    candidates: list[Listing],
    resolver: CoordinateResolver,
    report: DiscoveryReport,
) -> list[Listing]:
    located: list[Listing] = []
    for listing in candidates:
        try:
            point = resolver.resolve(zone_name=listing.zone, address=listing.address)
        except UnresolvedZoneError as exc:
            LOGGER.warning("Dropping listing id=%s: %s", listing.id, exc)
            report.rejected[REJECT_UNRESOLVED_ZONE] += 1
            continue
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Coordinate resolution failed id=%s: %s", listing.id, exc)
            report.errors.append(f"resolve {listing.id}: {exc}")
            continue
        listing.lat = point.lat
        listing.lng = point.lng
        report.resolution_tiers[point.tier] += 1
        located.append(listing)
    return located


def _repair_coordinates(
    corpus: list[Listing],
    resolver: CoordinateResolver,
    report: DiscoveryReport,
) -> list[Listing]:
    """
    Listings loaded from older runs may lack valid coordinates. Re-resolve them
    and leave out of analytics whatever still cannot be placed.
    """
    analyzable: list[Listing] = []
    for listing in corpus:
        if listing.has_coordinates and is_within_bounds(listing.lat, listing.lng):
            analyzable.append(listing)
            continue
        existing = Coordinates(listing.lat, listing.lng) if listing.has_coordinates else None
        try:
            point = resolver.resolve(existing=existing, zone_name=listing.zone, address=listing.address)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Excluding listing id=%s from analytics: %s", listing.id, exc)
            report.excluded += 1
            continue
        listing.lat = point.lat
        listing.lng = point.lng
        report.repaired += 1
        analyzable.append(listing)
    return analyzable
