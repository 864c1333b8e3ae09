from margarita.core.settings import PipelineSettings, load_settings


def test_defaults_without_environment(monkeypatch):
    for name in ("MAX_COMPARABLES", "UNRESOLVED_ZONE_POLICY", "SIMILARITY_WEIGHT_TYPE"):
        monkeypatch.delenv(name, raising=False)
    assert load_settings() == PipelineSettings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAX_COMPARABLES", " 5 ")
    monkeypatch.setenv("UNRESOLVED_ZONE_POLICY", "REJECT")
    monkeypatch.setenv("SIMILARITY_WEIGHT_TYPE", "0.5")
    monkeypatch.setenv("NOMINATIM_USER_AGENT", "tests/0.1")

    settings = load_settings()

    assert settings.max_comparables == 5
    assert settings.unresolved_zone_policy == "reject"
    assert settings.similarity.property_type == 0.5
    assert settings.nominatim_user_agent == "tests/0.1"


def test_bad_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MAX_COMPARABLES", "many")
    monkeypatch.setenv("UNRESOLVED_ZONE_POLICY", "explode")
    monkeypatch.setenv("DEDUPE_PRICE_TOLERANCE", "")

    settings = load_settings()

    assert settings.max_comparables == 10
    assert settings.unresolved_zone_policy == "fallback"
    assert settings.dedupe_price_tolerance == 0.10
