from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

import httpx

from margarita.core.gazetteer import ISLAND_BOUNDS
from margarita.core.models import Coordinates
from margarita.core.settings import PipelineSettings


LOGGER = logging.getLogger(__name__)


class Geocoder(Protocol):
    def geocode(self, address: str) -> Coordinates | None:
        """Return at most one candidate point for a free-text address."""


class NominatimGeocoder:
    """
    OpenStreetMap Nominatim lookup biased to the island bounding box.
    Failures and empty results both come back as None.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self._client = client
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: float | None = None
        self.request_count = 0

    def geocode(self, address: str) -> Coordinates | None:
        if not address.strip():
            return None
        query = f"{address.strip()}, Margarita, Venezuela"
        params = {
            "q": query,
            "format": "json",
            "limit": 1,
            "viewbox": (
                f"{ISLAND_BOUNDS['min_lng']},{ISLAND_BOUNDS['max_lat']},"
                f"{ISLAND_BOUNDS['max_lng']},{ISLAND_BOUNDS['min_lat']}"
            ),
            "bounded": 1,
        }
        self._throttle()
        try:
            payload = self._get(params)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Geocoder request failed query=%r error=%s", query, exc)
            return None
        return _first_point(payload)

    def _get(self, params: dict[str, Any]) -> Any:
        headers = {"User-Agent": self.settings.nominatim_user_agent, "Accept": "application/json"}
        self.request_count += 1
        if self._client is not None:
            response = self._client.get(self.settings.nominatim_url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        with httpx.Client(timeout=self.settings.geocoder_timeout_seconds) as client:
            response = client.get(self.settings.nominatim_url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()

    def _throttle(self) -> None:
        interval = self.settings.geocoder_min_interval_seconds
        now = self._clock()
        if self._last_request_at is not None and interval > 0:
            wait_seconds = interval - (now - self._last_request_at)
            if wait_seconds > 0:
                self._sleep(wait_seconds)
                now = self._clock()
        self._last_request_at = now


def _first_point(payload: Any) -> Coordinates | None:
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0]
    if not isinstance(first, dict):
        return None
    try:
        return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
    except (KeyError, TypeError, ValueError):
        return None
