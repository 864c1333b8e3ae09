from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from margarita.core.gazetteer import (
    DEFAULT_CENTER,
    ZONES,
    clamp_to_bounds,
    find_zone_by_name,
    is_within_bounds,
)
from margarita.core.geocoding import Geocoder
from margarita.core.models import Coordinates, GazetteerEntry, UnresolvedZoneError
from margarita.core.settings import PipelineSettings


LOGGER = logging.getLogger(__name__)

# Half-widths: gazetteer points move at most ~0.003 deg overall, the island centre ~0.01 deg.
ZONE_JITTER_DEGREES = 0.0015
DEFAULT_JITTER_DEGREES = 0.005

TIER_EXISTING = "existing"
TIER_GEOCODER = "geocoder"
TIER_GAZETTEER = "gazetteer"
TIER_DEFAULT = "default"


@dataclass(slots=True, frozen=True)
class ResolvedCoordinates:
    lat: float
    lng: float
    tier: str


class CoordinateResolver:
    def __init__(
        self,
        geocoder: Geocoder | None = None,
        rng: random.Random | None = None,
        settings: PipelineSettings | None = None,
        zones: tuple[GazetteerEntry, ...] = ZONES,
    ) -> None:
        self.geocoder = geocoder
        self.rng = rng or random.Random()
        self.settings = settings or PipelineSettings()
        self.zones = zones

    def resolve(
        self,
        existing: Coordinates | None = None,
        zone_name: str | None = None,
        address: str | None = None,
    ) -> ResolvedCoordinates:
        if existing is not None and is_within_bounds(existing.lat, existing.lng):
            return ResolvedCoordinates(existing.lat, existing.lng, TIER_EXISTING)

        if address and address.strip() and self.geocoder is not None:
            point = self._geocode(address)
            if point is not None and is_within_bounds(point.lat, point.lng):
                return ResolvedCoordinates(point.lat, point.lng, TIER_GEOCODER)
            if point is not None:
                LOGGER.info("Geocoder point outside island bounds address=%r point=%s", address, point)

        if zone_name and zone_name.strip():
            zone = find_zone_by_name(zone_name, self.zones)
            if zone is not None:
                point = self._jitter(zone.lat, zone.lng, ZONE_JITTER_DEGREES)
                return ResolvedCoordinates(point.lat, point.lng, TIER_GAZETTEER)
            if self.settings.unresolved_zone_policy == "reject":
                raise UnresolvedZoneError(f"Zone not in gazetteer: {zone_name!r}")
            LOGGER.warning("Unknown zone %r, using island centre", zone_name)

        point = self._jitter(DEFAULT_CENTER.lat, DEFAULT_CENTER.lng, DEFAULT_JITTER_DEGREES)
        return ResolvedCoordinates(point.lat, point.lng, TIER_DEFAULT)

    def _geocode(self, address: str) -> Coordinates | None:
        try:
            return self.geocoder.geocode(address) if self.geocoder is not None else None
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Geocoder raised for address=%r: %s", address, exc)
            return None

    def _jitter(self, lat: float, lng: float, half_width: float) -> Coordinates:
        # Fresh offset on every call so markers for the same zone do not stack.
        return clamp_to_bounds(
            lat + self.rng.uniform(-half_width, half_width),
            lng + self.rng.uniform(-half_width, half_width),
        )
