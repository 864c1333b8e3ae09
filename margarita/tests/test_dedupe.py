from datetime import datetime, timezone

from margarita.core.dedupe import (
    choose_existing_listing,
    dedupe_batch,
    is_similar_listing,
    reconcile_batch,
    reconcile_listing,
)
from margarita.core.models import Listing


NOW = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _listing(listing_id, **overrides):
    values = {
        "id": listing_id,
        "source": "instagram",
        "source_url": f"https://www.instagram.com/p/{listing_id}/",
        "caption": "",
        "property_type": "house",
        "zone": "Pampatar",
        "lat": 10.997,
        "lng": -63.7975,
        "price_usd": 85000.0,
        "bedrooms": 3,
        "bathrooms": 2,
        "quality_score": 70,
        "posted_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Listing(**values)


def test_dedupe_batch_keeps_highest_quality_in_first_seen_order():
    low = _listing("a", quality_score=60)
    other = _listing("b", zone="Porlamar")
    high = _listing("c", zone="pampatar ", quality_score=80)
    tie = _listing("d", quality_score=80)

    kept = dedupe_batch([low, other, high, tie])

    assert [listing.id for listing in kept] == ["c", "b"]


def test_dedupe_batch_keeps_listings_with_different_rooms():
    kept = dedupe_batch([_listing("a"), _listing("b", bedrooms=4)])
    assert len(kept) == 2


def test_url_match_escalates_to_sold_without_inserting():
    existing = _listing("a")
    corpus = [existing]
    candidate = _listing("new", source_url="HTTPS://www.instagram.com/p/a/", status="sold")

    outcome = reconcile_listing(corpus, candidate, now=NOW)

    assert outcome.skipped
    assert outcome.status_updated
    assert outcome.matched_id == "a"
    assert existing.status == "sold"
    assert existing.updated_at == NOW
    assert len(corpus) == 1


def test_sold_status_never_reverts():
    existing = _listing("a", status="sold")
    outcome = reconcile_listing([existing], _listing("new", source_url=existing.source_url), now=NOW)
    assert not outcome.status_updated
    assert existing.status == "sold"


def test_similar_listing_keeps_earliest_posted_date():
    existing = _listing("a")
    corpus = [existing]
    earlier = datetime(2026, 1, 15, tzinfo=timezone.utc)
    candidate = _listing("b", price_usd=90000.0, bedrooms=None, posted_at=earlier)

    outcome = reconcile_listing(corpus, candidate, now=NOW)

    assert outcome.skipped
    assert outcome.date_updated
    assert existing.posted_at == earlier
    assert len(corpus) == 1

    later = _listing("c", posted_at=datetime(2026, 3, 20, tzinfo=timezone.utc))
    assert not reconcile_listing(corpus, later, now=NOW).date_updated
    assert existing.posted_at == earlier


def test_similarity_rules():
    base = _listing("a")
    assert is_similar_listing(base, _listing("b", price_usd=93000.0))
    assert not is_similar_listing(base, _listing("b", price_usd=100000.0))
    assert not is_similar_listing(base, _listing("b", zone="Porlamar"))
    assert not is_similar_listing(base, _listing("b", property_type="apartment"))
    assert not is_similar_listing(base, _listing("b", bathrooms=3))
    assert is_similar_listing(base, _listing("b", bathrooms=None))
    assert not is_similar_listing(base, _listing("b", zone=None))

    free = _listing("z", price_usd=0.0)
    assert is_similar_listing(free, _listing("b", price_usd=0.0))
    assert not is_similar_listing(free, _listing("b", price_usd=5000.0))


def test_empty_urls_never_match():
    corpus = [_listing("a", source_url=None)]
    assert choose_existing_listing(corpus, None) is None
    assert choose_existing_listing(corpus, "  ") is None


def test_reconcile_batch_is_idempotent():
    corpus = [_listing("a")]
    candidates = [
        _listing("b", zone="Porlamar"),
        _listing("c", zone="Porlamar", price_usd=87000.0),
        _listing("d", property_type="land", bedrooms=None, bathrooms=None),
    ]

    first = reconcile_batch(corpus, candidates, now=NOW)
    # "c" is absorbed by "b", which was appended earlier in the same batch.
    assert [listing.id for listing in first.inserted] == ["b", "d"]
    assert first.skipped == 1
    assert len(corpus) == 3

    second = reconcile_batch(corpus, candidates, now=NOW)
    assert second.inserted == []
    assert second.skipped == 3
    assert len(corpus) == 3


def test_reconciling_the_same_urlless_listing_twice_inserts_once():
    corpus = []
    candidate = _listing("x", source_url=None)

    first = reconcile_listing(corpus, candidate, now=NOW)
    second = reconcile_listing(corpus, candidate, now=NOW)

    assert first.inserted
    assert not second.inserted
    assert second.matched_id == "x"
    assert [listing.id for listing in corpus] == ["x"]


def test_same_id_from_an_earlier_run_is_not_inserted_again():
    corpus = [_listing("x", source_url=None)]
    outcome = reconcile_listing(corpus, _listing("x", source_url=None, zone="Porlamar"), now=NOW)
    assert outcome.skipped
    assert corpus[0].zone == "Pampatar"
    assert len(corpus) == 1
