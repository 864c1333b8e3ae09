"""
Rule-based extraction of sale listings from free-text social media captions.

Every rule is a small pure function over the folded caption (lowercase, no
diacritics). Filters run in a fixed order and the first failure rejects the
caption; field extractors are best-effort and never reject.
"""
from __future__ import annotations

import logging
import re
from typing import Callable

from margarita.core.gazetteer import (
    CAPTION_ZONE_KEYWORDS,
    DEFAULT_ZONE_NAME,
    GENERIC_ZONE_KEYWORDS,
    find_zone_by_name,
    fold_text,
)
from margarita.core.models import ExtractedListing


LOGGER = logging.getLogger(__name__)

MIN_PRICE_USD = 1_000
MAX_PRICE_USD = 10_000_000
RULE_ENGINE_CONFIDENCE = 75

REJECT_EMPTY = "empty_caption"
REJECT_RENTAL = "rental"
REJECT_NOT_FOR_SALE = "not_for_sale"
REJECT_NO_PROPERTY = "no_property_keyword"
REJECT_NO_PRICE = "no_valid_price"

SALE_PATTERN = re.compile(
    r"\b(?:venta|vendo|se vende|precio|oportunidad|inversion|for sale|selling|sale|price|investment)\b"
    r"|\$\s*\d"
)
RENTAL_PATTERN = re.compile(r"\b(?:alquiler|alquila|alquilo|renta|rent|rental|renting|for rent)\b")
PROPERTY_PATTERN = re.compile(
    r"\b(?:casa|apartamento|apto|terreno|local|quinta|townhouse|penthouse|habitacion|inmueble"
    r"|propiedad|vivienda|lote|parcela|oficina|house|apartment|land|room|commercial|property"
    r"|residence|residencia|villa)"
)

_MULTIPLIERS = {"mil": 1000, "k": 1000, "thousand": 1000}

# (pattern, amount group, multiplier group or None), evaluated in this order.
PRICE_PATTERNS: tuple[tuple[re.Pattern[str], int, int | None], ...] = (
    (re.compile(r"\$\s*(\d[\d.,]*)(?:\s*(mil|k|thousand)\b)?"), 1, 2),
    (re.compile(r"(\d[\d.,]*)\s*(?:usd|dolares|dollars)\b"), 1, None),
    (re.compile(r"(\d[\d.,]*)\s*(mil|k|thousand)\s*(?:usd|dolares|dollars|\$)"), 1, 2),
    (re.compile(r"(?:precio|price)\s*:?\s*(\d[\d.,]*)(?:\s*(mil|k|thousand)\b)?"), 1, 2),
)

BEDROOM_PATTERNS = (
    re.compile(r"(\d+)\s*(?:hab|dormitorio|cuarto|recamara|bedroom|beds?\b|br\b)"),
    re.compile(r"(\d+)\s*h[/\s]"),
)
BATHROOM_PATTERNS = (re.compile(r"(\d+)\s*(?:bano|b/|wc\b|bath)"),)
AREA_PATTERNS = (
    re.compile(r"(\d{1,3}(?:[.,]\d{3})+|\d+)\s*(?:m2|mt2|mts2|mts|metros|sqm|square\s*meters)"),
)
PARKING_PATTERN = re.compile(r"(\d+)\s*(?:puestos?|estacionamientos?|parking\s*spaces?|garajes?)")

FEATURE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"piscina|\bpool\b"), "pool"),
    (re.compile(r"vista\s*(?:al\s*)?mar|sea\s*view|ocean\s*view"), "sea view"),
    (re.compile(r"amoblad[oa]|amueblad[oa]|\bfurnished\b"), "furnished"),
    (re.compile(r"aire\s*acondicionado|\ba/c\b|\bac\b|air\s*condition"), "air conditioning"),
    (re.compile(r"planta\s*electrica|generador|generator"), "generator"),
    (re.compile(r"estacionamiento|\bparking\b|garaje|garage"), "parking"),
    (re.compile(r"seguridad|vigilancia|\bsecurity\b"), "24h security"),
    (re.compile(r"cocina\s*equipada|equipped\s*kitchen"), "equipped kitchen"),
    (re.compile(r"terraza|balcon|terrace|balcony"), "terrace/balcony"),
    (re.compile(r"jardin|garden"), "garden"),
)

APARTMENT_PATTERN = re.compile(r"\b(?:apartamento|apto|penthouse|apartment|condo)")
LAND_PATTERN = re.compile(r"\b(?:terrenos?|lotes?|parcelas?|land|plots?)\b")
COMMERCIAL_PATTERN = re.compile(r"\b(?:local|locales|comercial|oficina|commercial|office|shop)\b")

SOLD_PATTERN = re.compile(r"\b(?:vendido|vendida|sold|se vendio|ya se vendio)\b")
RESERVED_PATTERN = re.compile(r"\b(?:reservado|reservada|reserved|en proceso|apartado|apartada)\b")

TYPE_LABELS = {
    "house": "House",
    "apartment": "Apartment",
    "land": "Land",
    "commercial": "Commercial unit",
}


def is_rental(text: str) -> bool:
    return RENTAL_PATTERN.search(text) is not None


def has_sale_intent(text: str) -> bool:
    return SALE_PATTERN.search(text) is not None


def has_property_keyword(text: str) -> bool:
    return PROPERTY_PATTERN.search(text) is not None


def parse_amount(raw: str, multiplier: str | None = None) -> float | None:
    """
    Turn "85.000", "1,200,000" or "85.5" (with a multiplier) into a number.
    """
    cleaned = raw.strip().strip(".,")
    if not cleaned:
        return None
    factor = _MULTIPLIERS.get((multiplier or "").lower(), 1)
    # "85.5 mil" / "1,5k": a single separator followed by 1-2 digits is a decimal point.
    decimal_match = re.fullmatch(r"(\d+)[.,](\d{1,2})", cleaned)
    if factor > 1 and decimal_match:
        value = float(f"{decimal_match.group(1)}.{decimal_match.group(2)}")
    else:
        digits = re.sub(r"[.,]", "", cleaned)
        if not digits.isdigit():
            return None
        value = float(digits)
    return value * factor


def extract_price(text: str) -> float | None:
    for pattern, amount_group, multiplier_group in PRICE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        multiplier = match.group(multiplier_group) if multiplier_group else None
        value = parse_amount(match.group(amount_group), multiplier)
        if value is not None and MIN_PRICE_USD <= value <= MAX_PRICE_USD:
            return value
    return None


def detect_zone(text: str, zone_hint: str | None = None) -> str:
    for keyword, zone_name in CAPTION_ZONE_KEYWORDS:
        if keyword not in GENERIC_ZONE_KEYWORDS and keyword in text:
            return zone_name
    if zone_hint:
        hinted = find_zone_by_name(zone_hint)
        if hinted is not None:
            return hinted.name
    for keyword, zone_name in CAPTION_ZONE_KEYWORDS:
        if keyword in GENERIC_ZONE_KEYWORDS and keyword in text:
            return zone_name
    return DEFAULT_ZONE_NAME


def detect_property_type(text: str) -> str:
    if APARTMENT_PATTERN.search(text):
        return "apartment"
    if LAND_PATTERN.search(text):
        return "land"
    if COMMERCIAL_PATTERN.search(text):
        return "commercial"
    return "house"


def _first_bounded_int(
    text: str,
    patterns: tuple[re.Pattern[str], ...],
    accept: Callable[[int], bool],
) -> int | None:
    for pattern in patterns:
        match = pattern.search(text)
        if not match:
            continue
        value = int(re.sub(r"[.,]", "", match.group(1)))
        if accept(value):
            return value
    return None


def extract_bedrooms(text: str) -> int | None:
    return _first_bounded_int(text, BEDROOM_PATTERNS, lambda value: 0 < value <= 20)


def extract_bathrooms(text: str) -> int | None:
    return _first_bounded_int(text, BATHROOM_PATTERNS, lambda value: 0 < value <= 10)


def extract_area(text: str) -> float | None:
    value = _first_bounded_int(text, AREA_PATTERNS, lambda value: 20 <= value <= 50_000)
    return float(value) if value is not None else None


def extract_parking_spaces(text: str, features: list[str]) -> int | None:
    value = _first_bounded_int(text, (PARKING_PATTERN,), lambda value: 0 < value <= 20)
    if value is None and "parking" in features:
        return 1
    return value


def extract_features(text: str) -> list[str]:
    return [name for pattern, name in FEATURE_PATTERNS if pattern.search(text)]


def detect_status(text: str) -> str:
    if SOLD_PATTERN.search(text):
        return "sold"
    if RESERVED_PATTERN.search(text):
        return "reserved"
    return "available"


def compute_quality_score(
    price: float | None,
    bedrooms: int | None,
    bathrooms: int | None,
    area_m2: float | None,
    features: list[str],
) -> int:
    score = 50
    if price:
        score += 15
    if bedrooms:
        score += 10
    if bathrooms:
        score += 5
    if area_m2:
        score += 10
    score += min(len(features) * 2, 10)
    return min(score, 100)


def build_title(property_type: str, zone: str) -> str:
    return f"{TYPE_LABELS.get(property_type, 'Property')} in {zone}"


def _rejection_reason(text: str) -> str | None:
    if not text:
        return REJECT_EMPTY
    if is_rental(text):
        return REJECT_RENTAL
    if not has_sale_intent(text):
        return REJECT_NOT_FOR_SALE
    if not has_property_keyword(text):
        return REJECT_NO_PROPERTY
    return None


def extract_listing_with_reason(
    caption: str | None,
    zone_hint: str | None = None,
) -> tuple[ExtractedListing | None, str | None]:
    text = fold_text(caption)
    reason = _rejection_reason(text)
    if reason is None:
        price = extract_price(text)
        if price is None:
            reason = REJECT_NO_PRICE
    if reason is not None:
        LOGGER.debug("Caption rejected reason=%s caption=%.60r", reason, caption)
        return None, reason

    zone = detect_zone(text, zone_hint=zone_hint)
    property_type = detect_property_type(text)
    bedrooms = extract_bedrooms(text)
    bathrooms = extract_bathrooms(text)
    area_m2 = extract_area(text)
    features = extract_features(text)
    status = detect_status(text)
    price_per_m2 = float(round(price / area_m2)) if area_m2 else None

    listing = ExtractedListing(
        property_type=property_type,
        price_usd=price,
        zone=zone,
        address=f"{zone}, Isla de Margarita, Venezuela",
        title=build_title(property_type, zone),
        reason=f"price_usd={int(price)};zone={zone};type={property_type};status={status}",
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        area_m2=area_m2,
        parking_spaces=extract_parking_spaces(text, features),
        price_per_m2=price_per_m2,
        features=features,
        status=status,
        quality_score=compute_quality_score(price, bedrooms, bathrooms, area_m2, features),
        ai_confidence=RULE_ENGINE_CONFIDENCE,
        is_valid=True,
    )
    LOGGER.debug("Caption accepted %s", listing.reason)
    return listing, None


def extract_listing(caption: str | None, zone_hint: str | None = None) -> ExtractedListing | None:
    listing, _ = extract_listing_with_reason(caption, zone_hint=zone_hint)
    return listing
