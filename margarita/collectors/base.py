from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from margarita.core.models import RawPost


class Collector(ABC):
    source_name: str

    @abstractmethod
    def fetch(self) -> list[dict[str, Any]]:
        """Fetch raw items from source."""

    @abstractmethod
    def normalize(self, raw_item: dict[str, Any]) -> RawPost | None:
        """Turn a source item into a raw post, or None when it is unusable."""

    def fetch_timestamp(self) -> datetime:
        return datetime.now(timezone.utc)


def owner_handle(username: Any) -> str | None:
    cleaned = str(username or "").strip().lstrip("@")
    return f"@{cleaned}" if cleaned else None
