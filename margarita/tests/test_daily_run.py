import json

import pytest

from margarita.collectors.instagram.collector import InstagramExportCollector
from margarita.collectors.spreadsheet.collector import SpreadsheetCollector
from margarita.core.models import ListingFilters
from margarita.core.settings import PipelineSettings
from margarita.jobs import daily_run
from margarita.jobs.daily_run import _fetch_with_retry, collector_for_file, export_listings, load_corpus, run_daily


CAPTION = "Casa en venta en Pampatar, 3 habitaciones, 2 baños, 150m2, piscina, precio $85.000 USD"


def _write_export(path):
    path.write_text(
        json.dumps([{"shortCode": "AAA", "caption": CAPTION, "ownerUsername": "isla_homes"}]),
        encoding="utf-8",
    )


def test_collector_is_chosen_by_file_contents(tmp_path):
    export = tmp_path / "instagram.json"
    _write_export(export)
    rows = tmp_path / "rows.json"
    rows.write_text(json.dumps([{"description": CAPTION}]), encoding="utf-8")
    sheet = tmp_path / "rows.csv"
    sheet.write_text("caption\n", encoding="utf-8")

    settings = PipelineSettings()
    assert isinstance(collector_for_file(export, settings), InstagramExportCollector)
    assert isinstance(collector_for_file(rows, settings), SpreadsheetCollector)
    assert isinstance(collector_for_file(sheet, settings), SpreadsheetCollector)


def test_run_daily_merges_into_corpus_and_moves_files(tmp_path):
    pending = tmp_path / "pending"
    pending.mkdir()
    _write_export(pending / "batch-1.json")
    corpus_path = tmp_path / "listings.json"
    processed = tmp_path / "processed"

    result = run_daily(pending, corpus_path, processed_dir=processed, settings=PipelineSettings())

    assert len(result.new_listings) == 1
    assert not (pending / "batch-1.json").exists()
    assert (processed / "batch-1.json").exists()

    stored = load_corpus(corpus_path)
    assert len(stored) == 1
    assert stored[0].source_url == "https://www.instagram.com/p/AAA/"
    assert stored[0].owner_handle == "@isla_homes"
    assert stored[0].lat is not None

    _write_export(pending / "batch-2.json")
    again = run_daily(pending, corpus_path, settings=PipelineSettings())
    assert again.new_listings == []
    assert len(load_corpus(corpus_path)) == 1


def test_run_daily_without_pending_files_does_nothing(tmp_path):
    assert run_daily(tmp_path, tmp_path / "listings.json", settings=PipelineSettings()) is None
    assert not (tmp_path / "listings.json").exists()


def test_fetch_with_retry_backs_off_then_succeeds(monkeypatch):
    waits = []
    monkeypatch.setattr(daily_run.time, "sleep", waits.append)
    attempts = {"count": 0}

    def flaky():
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise OSError("disk busy")
        return [{"caption": CAPTION}]

    assert _fetch_with_retry(flaky, source_name="batch.json", max_attempts=3) == [{"caption": CAPTION}]
    assert waits == [2, 4]


def test_fetch_with_retry_raises_last_error(monkeypatch):
    monkeypatch.setattr(daily_run.time, "sleep", lambda _: None)

    def broken():
        raise OSError("gone")

    with pytest.raises(OSError):
        _fetch_with_retry(broken, source_name="batch.json", max_attempts=2)


def test_unusable_rows_are_counted_as_malformed(tmp_path):
    pending = tmp_path / "pending"
    pending.mkdir()
    (pending / "batch.json").write_text(
        json.dumps(
            [
                {"shortCode": "AAA", "caption": CAPTION},
                {"shortCode": "SHORT", "caption": "Vendo casa"},
                {"shortCode": "BAD", "caption": CAPTION, "images": 5},
            ]
        ),
        encoding="utf-8",
    )

    result = run_daily(pending, tmp_path / "listings.json", settings=PipelineSettings())

    assert result.report.malformed == 2
    assert len(result.new_listings) == 1


def test_filtered_export_is_written_next_to_the_corpus(tmp_path):
    pending = tmp_path / "pending"
    pending.mkdir()
    _write_export(pending / "batch.json")
    export_path = tmp_path / "houses.json"

    run_daily(
        pending,
        tmp_path / "listings.json",
        settings=PipelineSettings(),
        export_path=export_path,
        export_filters=ListingFilters(types=["house"], max_price=100000),
    )

    exported = load_corpus(export_path)
    assert [listing.source_url for listing in exported] == ["https://www.instagram.com/p/AAA/"]

    assert export_listings(tmp_path / "land.json", exported, ListingFilters(types=["land"])) == 0
    assert load_corpus(tmp_path / "land.json") == []
