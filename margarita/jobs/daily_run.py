from __future__ import annotations

import argparse
import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any

from margarita.collectors.base import Collector
from margarita.collectors.instagram.collector import InstagramExportCollector
from margarita.collectors.spreadsheet.collector import SpreadsheetCollector
from margarita.core.coordinates import CoordinateResolver
from margarita.core.filters import SORT_KEYS, apply_filters, sort_listings
from margarita.core.geocoding import NominatimGeocoder
from margarita.core.models import Listing, ListingFilters, RawPost
from margarita.core.normalize import listing_to_record, record_to_listing
from margarita.core.pipeline import DiscoveryResult, run_discovery
from margarita.core.settings import PipelineSettings, _env_int, load_settings
from margarita.core.zones import get_top_zones, zone_summary


LOGGER = logging.getLogger(__name__)

PENDING_SUFFIXES = (".json", ".csv")
INSTAGRAM_MARKERS = ("shortCode", "ownerUsername", "displayUrl")


def collector_for_file(path: Path, settings: PipelineSettings) -> Collector:
    if path.suffix.lower() == ".json" and _looks_like_instagram_export(path):
        return InstagramExportCollector(path, settings=settings)
    return SpreadsheetCollector(path, settings=settings)


def load_corpus(path: Path) -> list[Listing]:
    if not path.exists():
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Corpus file {path} must contain a JSON array")
    listings = [record_to_listing(record) for record in payload if isinstance(record, dict)]
    return [listing for listing in listings if listing is not None]


def save_corpus(path: Path, listings: list[Listing]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    records = [listing_to_record(listing) for listing in listings]
    tmp_path.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp_path.replace(path)


def export_listings(
    path: Path,
    listings: list[Listing],
    filters: ListingFilters,
    sort_by: str = "newest",
) -> int:
    """
    Write the filtered, sorted listings as JSON records. Returns how many were written.
    """
    selected = sort_listings(apply_filters(listings, filters), sort_by)
    save_corpus(path, selected)
    LOGGER.info("Exported listings=%s to %s", len(selected), path)
    return len(selected)


def run_daily(
    pending_dir: Path,
    corpus_path: Path,
    processed_dir: Path | None = None,
    geocode: bool = False,
    settings: PipelineSettings | None = None,
    export_path: Path | None = None,
    export_filters: ListingFilters | None = None,
    sort_by: str = "newest",
) -> DiscoveryResult | None:
    settings = settings or load_settings()
    pending_files = sorted(
        path for path in pending_dir.glob("*") if path.is_file() and path.suffix.lower() in PENDING_SUFFIXES
    )
    if not pending_files:
        LOGGER.info("No pending files in %s", pending_dir)
        return None

    posts: list[RawPost] = []
    processed: list[Path] = []
    malformed = 0
    for path in pending_files:
        collector = collector_for_file(path, settings)
        try:
            raw_items = _fetch_with_retry(collector.fetch, source_name=path.name)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Collector fetch failed for %s: %s", path.name, exc)
            continue

        normalized_for_file = 0
        malformed_for_file = 0
        for item in raw_items:
            try:
                post = collector.normalize(item)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Normalize failed file=%s: %s", path.name, exc)
                post = None
            if post is None:
                malformed_for_file += 1
                continue
            posts.append(post)
            normalized_for_file += 1
        processed.append(path)
        malformed += malformed_for_file
        LOGGER.info(
            "File=%s fetched=%s normalized=%s malformed=%s",
            path.name,
            len(raw_items),
            normalized_for_file,
            malformed_for_file,
        )

    corpus = load_corpus(corpus_path)
    geocoder = NominatimGeocoder(settings=settings) if geocode else None
    resolver = CoordinateResolver(geocoder=geocoder, settings=settings)
    result = run_discovery(posts, corpus, resolver=resolver, settings=settings)
    result.report.malformed += malformed
    save_corpus(corpus_path, result.listings)
    if export_path is not None:
        export_listings(export_path, result.listings, export_filters or ListingFilters(), sort_by=sort_by)

    if processed_dir is not None:
        processed_dir.mkdir(parents=True, exist_ok=True)
        for path in processed:
            shutil.move(str(path), str(processed_dir / path.name))

    for zone in get_top_zones(result.zones):
        LOGGER.info("Top zone %s: %s", zone.name, zone_summary(zone))
    LOGGER.info(
        "Daily run completed. corpus=%s new=%s rejected=%s geocoder_requests=%s",
        len(result.listings),
        len(result.new_listings),
        dict(result.report.rejected),
        geocoder.request_count if geocoder is not None else 0,
    )
    return result


def _looks_like_instagram_export(path: Path) -> bool:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    if isinstance(payload, dict):
        payload = payload.get("items") or payload.get("data") or []
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return False
    return any(marker in payload[0] for marker in INSTAGRAM_MARKERS)


def _fetch_with_retry(fetch_func: Any, source_name: str, max_attempts: int | None = None) -> list[dict[str, Any]]:
    max_attempts = max_attempts or max(1, _env_int("FETCH_MAX_ATTEMPTS", 3))
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = fetch_func()
            return result if isinstance(result, list) else []
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            if attempt >= max_attempts:
                break
            wait_seconds = attempt * 2
            LOGGER.warning(
                "Collector retry source=%s attempt=%s/%s wait=%ss error=%s",
                source_name,
                attempt,
                max_attempts,
                wait_seconds,
                exc,
            )
            time.sleep(wait_seconds)
    if last_error:
        raise last_error
    return []


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Run the listing discovery pipeline over pending export files.")
    parser.add_argument("--pending-dir", type=Path, default=Path("data/pending"), help="Directory of exports to import.")
    parser.add_argument("--corpus", type=Path, default=Path("data/listings.json"), help="JSON corpus to merge into.")
    parser.add_argument("--processed-dir", type=Path, default=None, help="Move imported files here when done.")
    parser.add_argument("--geocode", action="store_true", help="Resolve addresses through Nominatim first.")
    parser.add_argument("--export", type=Path, default=None, help="Also write a filtered listing export here.")
    parser.add_argument("--type", action="append", default=[], help="Export only this property type (repeatable).")
    parser.add_argument("--status", action="append", default=[], help="Export only this status (repeatable).")
    parser.add_argument("--min-price", type=float, default=None, help="Minimum price in USD for the export.")
    parser.add_argument("--max-price", type=float, default=None, help="Maximum price in USD for the export.")
    parser.add_argument("--sort", default="newest", choices=SORT_KEYS, help="Export sort order.")
    args = parser.parse_args()
    run_daily(
        args.pending_dir,
        args.corpus,
        processed_dir=args.processed_dir,
        geocode=args.geocode,
        export_path=args.export,
        export_filters=ListingFilters(
            types=args.type,
            statuses=args.status,
            min_price=args.min_price,
            max_price=args.max_price,
        ),
        sort_by=args.sort,
    )
