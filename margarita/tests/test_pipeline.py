import random
from datetime import datetime, timezone

import pytest

from margarita.core import pipeline
from margarita.core.coordinates import CoordinateResolver
from margarita.core.gazetteer import is_within_bounds
from margarita.core.models import Listing, RawPost
from margarita.core.pipeline import run_discovery


NOW = datetime(2026, 4, 1, tzinfo=timezone.utc)
PAMPATAR_HOUSE = "Casa en venta en Pampatar, 3 habitaciones, 2 baños, 150m2, piscina, precio $85.000 USD"
PORLAMAR_FLAT = "Apartamento en venta en Porlamar, 2 habitaciones, 1 baño, 80m2, precio $45.000"


def _records():
    return [
        {"caption": PAMPATAR_HOUSE, "source": "instagram", "url": "https://www.instagram.com/p/AAA/"},
        {"caption": PAMPATAR_HOUSE, "source": "instagram", "url": "https://www.instagram.com/p/BBB/"},
        RawPost(caption=PORLAMAR_FLAT, source="instagram", source_url="https://www.instagram.com/p/CCC/"),
        {"caption": "Se alquila apartamento en Porlamar $500/mes", "source": "instagram"},
        None,
        {"caption": ""},
        42,
    ]


def _resolver():
    return CoordinateResolver(rng=random.Random(5))


def test_run_discovery_reports_stages_and_counts():
    events = []
    corpus = []

    result = run_discovery(_records(), corpus, resolver=_resolver(), on_progress=events.append, now=NOW)

    assert [event.stage for event in events] == ["scraping", "extracting", "geocoding", "analyzing", "complete"]
    progress = [event.progress for event in events]
    assert progress == sorted(progress)
    assert events[-1].progress == 100
    assert events[-1].listings_found == 2

    report = result.report
    assert report.received == 7
    assert report.malformed == 3
    assert report.rejected == {"rental": 1}
    assert report.extracted == 3
    assert report.batch_duplicates == 1
    assert report.inserted == 2
    assert report.resolution_tiers == {"gazetteer": 3}
    assert report.errors == []

    assert result.listings is corpus
    assert {listing.zone for listing in result.new_listings} == {"Pampatar", "Porlamar"}
    assert all(is_within_bounds(listing.lat, listing.lng) for listing in corpus)
    assert [zone.name for zone in result.zones] == ["Pampatar", "Porlamar"]


def test_second_run_with_same_posts_inserts_nothing():
    corpus = []
    run_discovery(_records(), corpus, resolver=_resolver(), now=NOW)

    result = run_discovery(_records(), corpus, resolver=_resolver(), now=NOW)

    assert result.new_listings == []
    assert result.report.skipped == 2
    assert len(corpus) == 2


def test_one_bad_record_does_not_abort_the_batch(monkeypatch):
    real_extract = pipeline.extract_listing_with_reason

    def flaky_extract(caption, zone_hint=None):
        if "Porlamar" in caption:
            raise RuntimeError("boom")
        return real_extract(caption, zone_hint=zone_hint)

    monkeypatch.setattr(pipeline, "extract_listing_with_reason", flaky_extract)

    result = run_discovery(_records(), [], resolver=_resolver(), now=NOW)

    assert len(result.report.errors) == 2
    assert [listing.zone for listing in result.new_listings] == ["Pampatar"]


def test_corpus_entries_without_coordinates_are_repaired():
    stale = Listing(
        id="old-1",
        source="import",
        source_url=None,
        caption="",
        property_type="land",
        zone="El Yaque",
        price_usd=30000.0,
    )
    corpus = [stale]

    result = run_discovery([], corpus, resolver=_resolver(), now=NOW)

    assert result.report.repaired == 1
    assert is_within_bounds(stale.lat, stale.lng)
    assert [zone.name for zone in result.zones] == ["El Yaque"]


def test_pipeline_failure_emits_error_and_reraises(monkeypatch):
    events = []

    def broken(*args, **kwargs):
        raise RuntimeError("analytics down")

    monkeypatch.setattr(pipeline, "analyze_zones", broken)

    with pytest.raises(RuntimeError):
        run_discovery(_records(), [], resolver=_resolver(), on_progress=events.append, now=NOW)

    assert events[-1].stage == "error"
