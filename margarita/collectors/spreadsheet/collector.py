from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from margarita.collectors.base import Collector, owner_handle
from margarita.core.models import RawPost
from margarita.core.normalize import build_listing_hash, parse_datetime
from margarita.core.settings import PipelineSettings


LOGGER = logging.getLogger(__name__)

# Candidate column names, most specific first. Matched case-insensitively.
CAPTION_COLUMNS = ("caption", "description", "descripción", "descripcion", "text", "contenido")
IMAGE_COLUMNS = ("imageurl", "image_url", "displayurl", "display_url", "photo", "foto")
URL_COLUMNS = ("posturl", "post_url", "url", "link")
OWNER_COLUMNS = ("ownerusername", "username", "usuario", "owner")
DATE_COLUMNS = ("timestamp", "posted_at", "postedat", "date", "fecha")
LOCATION_COLUMNS = ("locationname", "location", "zona", "zone", "ubicacion")


class SpreadsheetCollector(Collector):
    """
    Imports manually exported rows from a CSV or JSON file, guessing which columns hold what.
    """

    source_name = "import"

    def __init__(self, path: str | Path, settings: PipelineSettings | None = None) -> None:
        self.path = Path(path)
        self.min_caption_length = (settings or PipelineSettings()).min_caption_length

    def fetch(self) -> list[dict[str, Any]]:
        suffix = self.path.suffix.lower()
        if suffix == ".csv":
            with self.path.open(newline="", encoding="utf-8-sig") as handle:
                return [dict(row) for row in csv.DictReader(handle)]
        if suffix == ".json":
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, list):
                LOGGER.warning("Expected a JSON array in %s", self.path)
                return []
            return [row for row in payload if isinstance(row, dict)]
        raise ValueError(f"Unsupported import file type: {self.path.name}")

    def normalize(self, raw_item: dict[str, Any]) -> RawPost | None:
        row = {str(key).strip().lower(): value for key, value in raw_item.items() if key is not None}
        caption = _pick(row, CAPTION_COLUMNS)
        if caption is None or len(caption) < self.min_caption_length:
            return None

        image_url = _pick(row, IMAGE_COLUMNS)
        url = _pick(row, URL_COLUMNS)
        listing_hash = build_listing_hash(self.source_name, None, url, caption)
        return RawPost(
            caption=caption,
            source=self.source_name,
            source_url=url,
            external_id=_pick(row, ("id",)) or listing_hash[:16],
            thumbnail_url=image_url,
            media_urls=[image_url] if image_url else [],
            owner_handle=owner_handle(_pick(row, OWNER_COLUMNS)),
            posted_at=parse_datetime(_pick(row, DATE_COLUMNS)),
            location_name=_pick(row, LOCATION_COLUMNS),
        )


def _pick(row: dict[str, Any], columns: tuple[str, ...]) -> str | None:
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
