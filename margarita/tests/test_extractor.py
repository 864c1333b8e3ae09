from margarita.core.extractor import (
    compute_quality_score,
    detect_zone,
    extract_listing,
    extract_listing_with_reason,
    extract_price,
    is_rental,
    parse_amount,
)


def test_extracts_full_listing_from_spanish_caption():
    listing = extract_listing(
        "Casa en venta en Pampatar, 3 habitaciones, 2 baños, 150m2, piscina, precio $85.000 USD"
    )

    assert listing is not None
    assert listing.property_type == "house"
    assert listing.price_usd == 85000
    assert listing.zone == "Pampatar"
    assert listing.bedrooms == 3
    assert listing.bathrooms == 2
    assert listing.area_m2 == 150
    assert listing.features == ["pool"]
    assert listing.quality_score == 92
    assert listing.price_per_m2 == 567
    assert listing.status == "available"
    assert listing.title == "House in Pampatar"
    assert listing.address == "Pampatar, Isla de Margarita, Venezuela"
    assert listing.ai_confidence == 75


def test_rental_wins_over_sale_signals():
    listing, reason = extract_listing_with_reason("Se alquila apartamento en Porlamar $500/mes")
    assert listing is None
    assert reason == "rental"


def test_rentabilidad_is_not_a_rental_keyword():
    assert is_rental("excelente rentabilidad") is False
    listing = extract_listing("Local comercial en venta, excelente rentabilidad, precio $120.000")
    assert listing is not None
    assert listing.property_type == "commercial"
    assert listing.zone == "Isla de Margarita"


def test_rejection_reasons():
    assert extract_listing_with_reason("")[1] == "empty_caption"
    assert extract_listing_with_reason(None)[1] == "empty_caption"
    assert extract_listing_with_reason("Hermosa casa en Pampatar con piscina")[1] == "not_for_sale"
    assert extract_listing_with_reason("Vendo carro $5000")[1] == "no_property_keyword"
    assert extract_listing_with_reason("Casa en venta en Porlamar precio $500")[1] == "no_valid_price"


def test_price_multipliers_and_separators():
    assert extract_price("apartamento 85 mil $") == 85000
    assert extract_price("casa $120k") == 120000
    assert extract_price("terreno 30.000 usd") == 30000
    assert extract_price("precio: 1,200,000") == 1200000
    assert extract_price("casa $50") is None
    assert extract_price("mansion $20.000.000") is None
    assert parse_amount("85,5", "mil") == 85500


def test_sold_status_is_detected():
    listing = extract_listing("Casa VENDIDA en Juan Griego, precio $60.000")
    assert listing is not None
    assert listing.status == "sold"
    assert listing.zone == "Juan Griego"


def test_zone_hint_used_only_when_caption_names_no_zone():
    caption = "vendo apartamento, 2 hab, precio $40.000"
    assert detect_zone(caption, zone_hint="Playa El Agua") == "Playa El Agua"
    assert detect_zone(caption, zone_hint="Unknown Place") == "Isla de Margarita"
    assert detect_zone("casa en venta en porlamar", zone_hint="Pampatar") == "Porlamar"


def test_land_listing_with_area():
    listing = extract_listing("Terreno en venta en Macanao 1000 m2 precio 30.000 usd")
    assert listing is not None
    assert listing.property_type == "land"
    assert listing.zone == "Boca de Río"
    assert listing.area_m2 == 1000
    assert listing.price_per_m2 == 30


def test_parking_spaces_from_count_or_feature():
    listing = extract_listing("Casa en venta en Pampatar con estacionamiento, precio $90.000")
    assert listing is not None
    assert "parking" in listing.features
    assert listing.parking_spaces == 1

    listing = extract_listing("Casa en venta en Pampatar, 2 puestos de estacionamiento, precio $90.000")
    assert listing is not None
    assert listing.parking_spaces == 2


def test_quality_score_bounds():
    assert compute_quality_score(None, None, None, None, []) == 50
    features = ["pool", "sea view", "furnished", "generator", "parking", "garden"]
    assert compute_quality_score(100000, 3, 2, 200, features) == 100


def test_zone_keyword_order_follows_the_registry():
    listing = extract_listing("Casa en venta en Pampatar, municipio Maneiro, precio $80.000")
    assert listing.zone == "Pampatar"
    assert extract_listing("Casa en venta en Playa El Humo, precio $80.000").zone == "Playa El Humo"
    assert detect_zone("apartamento en boca del pozo") == "Boca del Pozo"
    assert detect_zone("apartamento en puerto viejo") == "Playa Puerto Viejo"


def test_generic_keywords_rank_below_location_hint():
    caption = "casa en venta, nueva esparta, precio $40.000"
    assert detect_zone(caption) == "Nueva Esparta"
    assert detect_zone(caption, zone_hint="El Yaque") == "El Yaque"
    assert detect_zone("casa en margarita") == "Isla de Margarita"
