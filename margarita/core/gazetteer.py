from __future__ import annotations

import math
import unicodedata
from typing import Any

from margarita.core.models import Coordinates, GazetteerEntry


# Verified against satellite imagery. Registry order is the tie-break for partial matches.
ZONES: tuple[GazetteerEntry, ...] = (
    # Cities
    GazetteerEntry("Porlamar", 10.9580, -63.8520, ("centro", "casco central")),
    GazetteerEntry("Pampatar", 10.9970, -63.7975, ("castillo",)),
    GazetteerEntry("Juan Griego", 11.0850, -63.9690, ("bahia juan griego",)),
    GazetteerEntry("La Asunción", 11.0333, -63.8628, ("asuncion", "capital")),
    # Maneiro commercial area
    GazetteerEntry("Sambil", 10.9962, -63.8140, ("sambil margarita", "cc sambil")),
    GazetteerEntry("Rattan Plaza", 10.9926, -63.8234, ("rattan", "cc rattan")),
    GazetteerEntry("La Caracola", 10.9580, -63.8491, ("pista caracola",)),
    GazetteerEntry("Costa Azul", 10.9772, -63.8229, ("urb costa azul", "urbanizacion costa azul")),
    GazetteerEntry("Jorge Coll", 10.9991, -63.8228, ("urb jorge coll",)),
    GazetteerEntry("Los Robles", 10.9880, -63.8310, ("plaza los robles",)),
    GazetteerEntry("Maneiro", 10.9950, -63.8150, ("municipio maneiro",)),
    GazetteerEntry("Parque Costazul", 10.9880, -63.8540, ("costazul", "cc costazul")),
    GazetteerEntry("Bella Vista", 10.9660, -63.8570, ("playa bella vista",)),
    GazetteerEntry("El Morro", 10.9610, -63.8380, ("playa el morro",)),
    GazetteerEntry("Costa Margarita", 10.9930, -63.8050, ("hotel costa margarita",)),
    GazetteerEntry("Piedras", 10.9560, -63.8420, ("sector piedras",)),
    # Residential
    GazetteerEntry("Villa Rosa", 10.9524, -63.9258, ("urb villa rosa",)),
    GazetteerEntry("Las Garzas", 10.9690, -63.8500, ("sector las garzas", "sigo")),
    GazetteerEntry("La Arboleda", 10.9762, -63.8332, ("urb la arboleda",)),
    GazetteerEntry("Los Cocos", 10.9555, -63.8477, ("sector los cocos",)),
    GazetteerEntry("Playa El Angel", 10.9880, -63.8330, ("el angel", "playa el ángel")),
    GazetteerEntry("El Paraíso", 10.9650, -63.8400, ("urb el paraiso",)),
    GazetteerEntry("Sabanamar", 10.9700, -63.8350, ("urb sabanamar",)),
    # East coast and beaches
    GazetteerEntry("Guacuco", 11.0502, -63.8133, ("playa guacuco",)),
    GazetteerEntry("Paraguachí", 11.0600, -63.8100),
    GazetteerEntry("El Cardón", 11.0450, -63.8150),
    GazetteerEntry("Playa Caribe", 11.1110, -63.9580, ("caribe",)),
    # North
    GazetteerEntry("Playa El Agua", 11.1455, -63.8630, ("el agua",)),
    GazetteerEntry("Playa Parguito", 11.1350, -63.8510, ("parguito",)),
    GazetteerEntry("Puerto Cruz", 11.1450, -63.9550),
    GazetteerEntry("Playa Zaragoza", 11.1400, -63.9400, ("zaragoza",)),
    GazetteerEntry("Pedro González", 11.1350, -63.9350, ("pedro gonzalez",)),
    GazetteerEntry("Manzanillo", 11.1575, -63.8920, ("bahia manzanillo",)),
    GazetteerEntry("Playa El Humo", 11.1420, -63.9180, ("el humo",)),
    GazetteerEntry("Playa Puerto Viejo", 11.1380, -63.9260, ("puerto viejo",)),
    # South and west
    GazetteerEntry("El Yaque", 10.9023, -63.9616, ("playa el yaque", "yaque")),
    GazetteerEntry("El Valle", 10.9850, -63.8850, ("valle del espiritu santo", "basilica")),
    GazetteerEntry("Santa Ana", 11.0680, -63.9200, ("santa ana del norte",)),
    GazetteerEntry("Tacarigua", 11.0600, -63.9050),
    GazetteerEntry("San Juan Bautista", 11.0100, -63.9300, ("san juan",)),
    GazetteerEntry("La Galera", 11.0920, -63.9780, ("playa la galera",)),
    GazetteerEntry("Boca de Río", 10.9650, -64.0300, ("boca del rio",)),
    # Macanao
    GazetteerEntry("Boca del Pozo", 10.9800, -64.0100, ("boca de pozo",)),
    GazetteerEntry("San Francisco", 10.9700, -64.0000, ("san francisco macanao",)),
    # State name used as a catch-all in captions
    GazetteerEntry("Nueva Esparta", 11.0000, -63.8800, ("estado nueva esparta",)),
    # Island-wide default, keep last
    GazetteerEntry("Isla de Margarita", 11.0000, -63.8800, ("margarita", "isla")),
)

ISLAND_BOUNDS = {
    "min_lat": 10.85,
    "max_lat": 11.20,
    "min_lng": -64.05,
    "max_lng": -63.70,
}

DEFAULT_ZONE_NAME = "Isla de Margarita"
DEFAULT_CENTER = Coordinates(lat=11.0000, lng=-63.8800)

# Caption keyword -> canonical zone. Specific places first, island-wide keywords last.
CAPTION_ZONE_KEYWORDS: tuple[tuple[str, str], ...] = (
    # Porlamar and surroundings
    ("porlamar", "Porlamar"),
    ("sambil", "Sambil"),
    ("caracola", "La Caracola"),
    ("rattan", "Rattan Plaza"),
    ("bella vista", "Bella Vista"),
    ("costa azul", "Costa Azul"),
    ("los robles", "Los Robles"),
    ("el morro", "El Morro"),
    ("piedras", "Piedras"),
    ("costa margarita", "Costa Margarita"),
    # Residential
    ("jorge coll", "Jorge Coll"),
    ("villa rosa", "Villa Rosa"),
    ("las garzas", "Las Garzas"),
    ("la arboleda", "La Arboleda"),
    ("los cocos", "Los Cocos"),
    ("playa el angel", "Playa El Angel"),
    ("el angel", "Playa El Angel"),
    # Pampatar and east
    ("pampatar", "Pampatar"),
    ("guacuco", "Guacuco"),
    ("paraguachi", "Paraguachí"),
    ("el cardon", "El Cardón"),
    ("playa caribe", "Playa Caribe"),
    # North beaches
    ("playa el agua", "Playa El Agua"),
    ("el agua", "Playa El Agua"),
    ("parguito", "Playa Parguito"),
    ("puerto cruz", "Puerto Cruz"),
    ("zaragoza", "Playa Zaragoza"),
    ("el humo", "Playa El Humo"),
    ("manzanillo", "Manzanillo"),
    ("pedro gonzalez", "Pedro González"),
    ("puerto viejo", "Playa Puerto Viejo"),
    # Centre of the island
    ("la asuncion", "La Asunción"),
    ("asuncion", "La Asunción"),
    ("el valle", "El Valle"),
    ("santa ana", "Santa Ana"),
    ("tacarigua", "Tacarigua"),
    # Juan Griego and west
    ("juan griego", "Juan Griego"),
    ("san juan bautista", "San Juan Bautista"),
    ("la galera", "La Galera"),
    # Macanao
    ("el yaque", "El Yaque"),
    ("yaque", "El Yaque"),
    ("boca de rio", "Boca de Río"),
    ("boca del pozo", "Boca del Pozo"),
    ("san francisco", "San Francisco"),
    ("macanao", "Boca de Río"),
    # Gazetteer places without a keyword above
    ("maneiro", "Maneiro"),
    ("costazul", "Parque Costazul"),
    ("sabanamar", "Sabanamar"),
    ("el paraiso", "El Paraíso"),
    ("boca de pozo", "Boca del Pozo"),
    # Generic, keep last
    ("margarita", DEFAULT_ZONE_NAME),
    ("nueva esparta", "Nueva Esparta"),
)

# Island-wide keywords; a location hint outranks them.
GENERIC_ZONE_KEYWORDS = frozenset({"margarita", "nueva esparta"})


def fold_text(value: Any) -> str:
    """
    Lowercase, strip diacritics and collapse whitespace.
    """
    if not isinstance(value, str):
        return ""
    normalized = unicodedata.normalize("NFKD", value.lower())
    ascii_text = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return " ".join(ascii_text.split())


def find_zone_by_name(zone_name: str | None, zones: tuple[GazetteerEntry, ...] = ZONES) -> GazetteerEntry | None:
    """
    Exact canonical name, then exact alias, then substring either way (registry order).
    """
    needle = fold_text(zone_name)
    if not needle:
        return None

    for zone in zones:
        if fold_text(zone.name) == needle:
            return zone

    for zone in zones:
        if any(fold_text(alias) == needle for alias in zone.aliases):
            return zone

    for zone in zones:
        candidates = [fold_text(zone.name), *(fold_text(alias) for alias in zone.aliases)]
        for candidate in candidates:
            if candidate and (needle in candidate or candidate in needle):
                return zone
    return None


def is_within_bounds(lat: Any, lng: Any) -> bool:
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return (
        ISLAND_BOUNDS["min_lat"] <= lat <= ISLAND_BOUNDS["max_lat"]
        and ISLAND_BOUNDS["min_lng"] <= lng <= ISLAND_BOUNDS["max_lng"]
    )


def clamp_to_bounds(lat: float, lng: float) -> Coordinates:
    return Coordinates(
        lat=max(ISLAND_BOUNDS["min_lat"], min(ISLAND_BOUNDS["max_lat"], lat)),
        lng=max(ISLAND_BOUNDS["min_lng"], min(ISLAND_BOUNDS["max_lng"], lng)),
    )


def known_zone_names(zones: tuple[GazetteerEntry, ...] = ZONES) -> list[str]:
    return [zone.name for zone in zones]
