from __future__ import annotations

import os
from dataclasses import dataclass, field


UNRESOLVED_ZONE_POLICIES = ("fallback", "reject")


@dataclass(slots=True, frozen=True)
class SimilarityWeights:
    property_type: float = 0.30
    zone: float = 0.25
    area: float = 0.20
    bedrooms: float = 0.15
    bathrooms: float = 0.10


@dataclass(slots=True, frozen=True)
class RecommendationWeights:
    price: float = 0.4
    quality: float = 0.4
    density: float = 0.2
    high_threshold: float = 70.0
    medium_threshold: float = 45.0
    density_saturation: int = 10


@dataclass(slots=True, frozen=True)
class PipelineSettings:
    similarity: SimilarityWeights = field(default_factory=SimilarityWeights)
    recommendation: RecommendationWeights = field(default_factory=RecommendationWeights)
    min_comparable_similarity: float = 0.3
    max_comparables: int = 10
    dedupe_price_tolerance: float = 0.10
    unresolved_zone_policy: str = "fallback"  # fallback | reject
    min_caption_length: int = 20
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_user_agent: str = "margarita-listings/1.0"
    geocoder_timeout_seconds: float = 15.0
    geocoder_min_interval_seconds: float = 1.1


def load_settings() -> PipelineSettings:
    """
    Build settings from environment variables, keeping defaults for anything missing or malformed.
    """
    defaults = PipelineSettings()
    similarity = SimilarityWeights(
        property_type=_env_float("SIMILARITY_WEIGHT_TYPE", defaults.similarity.property_type),
        zone=_env_float("SIMILARITY_WEIGHT_ZONE", defaults.similarity.zone),
        area=_env_float("SIMILARITY_WEIGHT_AREA", defaults.similarity.area),
        bedrooms=_env_float("SIMILARITY_WEIGHT_BEDROOMS", defaults.similarity.bedrooms),
        bathrooms=_env_float("SIMILARITY_WEIGHT_BATHROOMS", defaults.similarity.bathrooms),
    )
    recommendation = RecommendationWeights(
        price=_env_float("RECOMMENDATION_WEIGHT_PRICE", defaults.recommendation.price),
        quality=_env_float("RECOMMENDATION_WEIGHT_QUALITY", defaults.recommendation.quality),
        density=_env_float("RECOMMENDATION_WEIGHT_DENSITY", defaults.recommendation.density),
    )
    policy = _env_str("UNRESOLVED_ZONE_POLICY", defaults.unresolved_zone_policy).lower()
    if policy not in UNRESOLVED_ZONE_POLICIES:
        policy = defaults.unresolved_zone_policy

    return PipelineSettings(
        similarity=similarity,
        recommendation=recommendation,
        min_comparable_similarity=_env_float("MIN_COMPARABLE_SIMILARITY", defaults.min_comparable_similarity),
        max_comparables=max(1, _env_int("MAX_COMPARABLES", defaults.max_comparables)),
        dedupe_price_tolerance=_env_float("DEDUPE_PRICE_TOLERANCE", defaults.dedupe_price_tolerance),
        unresolved_zone_policy=policy,
        min_caption_length=max(0, _env_int("MIN_CAPTION_LENGTH", defaults.min_caption_length)),
        nominatim_url=_env_str("NOMINATIM_URL", defaults.nominatim_url),
        nominatim_user_agent=_env_str("NOMINATIM_USER_AGENT", defaults.nominatim_user_agent),
        geocoder_timeout_seconds=_env_float("GEOCODER_TIMEOUT_SECONDS", defaults.geocoder_timeout_seconds),
        geocoder_min_interval_seconds=_env_float(
            "GEOCODER_MIN_INTERVAL_SECONDS", defaults.geocoder_min_interval_seconds
        ),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except (TypeError, ValueError):
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()
