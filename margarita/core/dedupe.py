from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from margarita.core.models import Listing


LOGGER = logging.getLogger(__name__)

DEFAULT_PRICE_TOLERANCE = 0.10


@dataclass(slots=True)
class MergeOutcome:
    inserted: bool
    matched_id: str | None = None
    status_updated: bool = False
    date_updated: bool = False

    @property
    def skipped(self) -> bool:
        return not self.inserted


@dataclass(slots=True)
class MergeReport:
    inserted: list[Listing] = field(default_factory=list)
    skipped: int = 0
    status_updated: int = 0
    date_updated: int = 0


def batch_identity_key(listing: Listing) -> tuple[Any, ...]:
    return (
        listing.price_usd,
        (listing.zone or "").strip().lower(),
        listing.property_type,
        listing.bedrooms,
        listing.bathrooms,
    )


def dedupe_batch(candidates: list[Listing]) -> list[Listing]:
    """
    Collapse repeats inside one incoming batch, keeping the highest quality score per key.
    """
    kept: dict[tuple[Any, ...], Listing] = {}
    for candidate in candidates:
        key = batch_identity_key(candidate)
        existing = kept.get(key)
        if existing is None:
            kept[key] = candidate
        elif candidate.quality_score > existing.quality_score:
            LOGGER.debug("Batch duplicate replaced %s -> %s", existing.id, candidate.id)
            kept[key] = candidate
        else:
            LOGGER.debug("Batch duplicate dropped %s", candidate.id)

    removed = len(candidates) - len(kept)
    if removed:
        LOGGER.info("Batch dedupe removed=%s kept=%s", removed, len(kept))
    return list(kept.values())


def choose_existing_listing(corpus: list[Listing], source_url: str | None) -> Listing | None:
    """
    Identity lookup by source URL, compared case-insensitively. Empty URLs never match.
    """
    needle = (source_url or "").strip().lower()
    if not needle:
        return None
    for row in corpus:
        row_url = (row.source_url or "").strip().lower()
        if row_url and row_url == needle:
            return row
    return None


def is_similar_listing(
    existing: Listing,
    candidate: Listing,
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
) -> bool:
    if not existing.zone or not candidate.zone:
        return False
    if existing.zone.strip().lower() != candidate.zone.strip().lower():
        return False
    if existing.property_type != candidate.property_type:
        return False

    if existing.price_usd is not None and candidate.price_usd is not None:
        if existing.price_usd == 0:
            if candidate.price_usd != 0:
                return False
        elif abs(existing.price_usd - candidate.price_usd) / existing.price_usd > price_tolerance:
            return False

    if existing.bedrooms is not None and candidate.bedrooms is not None and existing.bedrooms != candidate.bedrooms:
        return False
    if existing.bathrooms is not None and candidate.bathrooms is not None and existing.bathrooms != candidate.bathrooms:
        return False
    return True


def find_similar_listing(
    corpus: list[Listing],
    candidate: Listing,
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
) -> Listing | None:
    for existing in corpus:
        if existing is candidate:
            continue
        if is_similar_listing(existing, candidate, price_tolerance):
            return existing
    return None


def reconcile_listing(
    corpus: list[Listing],
    candidate: Listing,
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
    now: datetime | None = None,
) -> MergeOutcome:
    """
    Merge one candidate into the corpus in place.

    A URL match or a similar listing absorbs the candidate: status may only
    escalate to sold and the posted date may only move earlier. Anything else
    is appended to the corpus. Not safe to call concurrently on one corpus.
    """
    timestamp = now or datetime.now(timezone.utc)

    itself = _find_same_listing(corpus, candidate)
    if itself is not None:
        return MergeOutcome(inserted=False, matched_id=itself.id)

    same_url = choose_existing_listing(corpus, candidate.source_url)
    if same_url is not None:
        outcome = MergeOutcome(inserted=False, matched_id=same_url.id)
        outcome.status_updated = _escalate_sold(same_url, candidate, timestamp)
        return outcome

    similar = find_similar_listing(corpus, candidate, price_tolerance)
    if similar is not None:
        outcome = MergeOutcome(inserted=False, matched_id=similar.id)
        outcome.date_updated = _keep_earliest_posted(similar, candidate, timestamp)
        outcome.status_updated = _escalate_sold(similar, candidate, timestamp)
        LOGGER.debug("Similar listing found candidate=%s existing=%s", candidate.id, similar.id)
        return outcome

    corpus.append(candidate)
    return MergeOutcome(inserted=True, matched_id=candidate.id)


def reconcile_batch(
    corpus: list[Listing],
    candidates: list[Listing],
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
    now: datetime | None = None,
) -> MergeReport:
    report = MergeReport()
    for candidate in candidates:
        outcome = reconcile_listing(corpus, candidate, price_tolerance=price_tolerance, now=now)
        if outcome.inserted:
            report.inserted.append(candidate)
            continue
        report.skipped += 1
        report.status_updated += int(outcome.status_updated)
        report.date_updated += int(outcome.date_updated)

    LOGGER.info(
        "Corpus merge inserted=%s skipped=%s status_updated=%s date_updated=%s",
        len(report.inserted),
        report.skipped,
        report.status_updated,
        report.date_updated,
    )
    return report


def _find_same_listing(corpus: list[Listing], candidate: Listing) -> Listing | None:
    for existing in corpus:
        if existing is candidate or (candidate.id and existing.id == candidate.id):
            return existing
    return None


def _escalate_sold(existing: Listing, candidate: Listing, timestamp: datetime) -> bool:
    if candidate.status != "sold" or existing.status == "sold":
        return False
    LOGGER.info("Marking listing sold id=%s", existing.id)
    existing.status = "sold"
    existing.updated_at = timestamp
    return True


def _keep_earliest_posted(existing: Listing, candidate: Listing, timestamp: datetime) -> bool:
    if candidate.posted_at is None:
        return False
    if existing.posted_at is not None and not _as_utc(candidate.posted_at) < _as_utc(existing.posted_at):
        return False
    existing.posted_at = candidate.posted_at
    existing.updated_at = timestamp
    return True


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
