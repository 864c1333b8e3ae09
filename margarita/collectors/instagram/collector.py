from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from margarita.collectors.base import Collector, owner_handle
from margarita.core.models import RawPost
from margarita.core.normalize import parse_datetime
from margarita.core.settings import PipelineSettings


LOGGER = logging.getLogger(__name__)

POST_URL_TEMPLATE = "https://www.instagram.com/p/{code}/"


class InstagramExportCollector(Collector):
    """
    Reads a scraped Instagram dataset export (a JSON array of post objects).
    """

    source_name = "instagram"

    def __init__(self, path: str | Path, settings: PipelineSettings | None = None) -> None:
        self.path = Path(path)
        self.min_caption_length = (settings or PipelineSettings()).min_caption_length

    def fetch(self) -> list[dict[str, Any]]:
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            # Some exports wrap the dataset: {"items": [...]}.
            payload = payload.get("items") or payload.get("data") or []
        if not isinstance(payload, list):
            LOGGER.warning("Unexpected export shape in %s: %s", self.path, type(payload).__name__)
            return []
        return [item for item in payload if isinstance(item, dict)]

    def normalize(self, raw_item: dict[str, Any]) -> RawPost | None:
        caption = raw_item.get("caption") or raw_item.get("description") or ""
        if not isinstance(caption, str) or len(caption.strip()) < self.min_caption_length:
            return None

        code = raw_item.get("shortCode") or raw_item.get("code")
        external_id = raw_item.get("id") or code
        url = raw_item.get("url") or (POST_URL_TEMPLATE.format(code=code) if code else None)

        display_url = raw_item.get("displayUrl") or raw_item.get("thumbnailUrl")
        images = [str(image) for image in raw_item.get("images") or [] if image]
        media_urls = images or ([str(display_url)] if display_url else [])
        if raw_item.get("videoUrl") and raw_item["videoUrl"] not in media_urls:
            media_urls.append(str(raw_item["videoUrl"]))

        location = raw_item.get("locationName")
        if not location and isinstance(raw_item.get("location"), dict):
            location = raw_item["location"].get("name")

        return RawPost(
            caption=caption.strip(),
            source=self.source_name,
            source_url=url,
            external_id=str(external_id) if external_id is not None else None,
            thumbnail_url=str(display_url) if display_url else None,
            media_urls=media_urls,
            owner_handle=owner_handle(raw_item.get("ownerUsername")),
            posted_at=parse_datetime(raw_item.get("timestamp") or raw_item.get("takenAt")),
            location_name=str(location).strip() if location else None,
        )
