import httpx
import pytest

from margarita.core.geocoding import NominatimGeocoder
from margarita.core.models import Coordinates


def _geocoder(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return NominatimGeocoder(client=client, sleep=lambda _: None, **kwargs)


def test_geocode_sends_bounded_query_and_parses_first_result():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["User-Agent"]
        return httpx.Response(200, json=[{"lat": "10.99", "lon": "-63.80"}, {"lat": "0", "lon": "0"}])

    geocoder = _geocoder(handler)
    point = geocoder.geocode("Calle Principal, Pampatar")

    assert point == Coordinates(10.99, -63.80)
    assert seen["params"]["q"] == "Calle Principal, Pampatar, Margarita, Venezuela"
    assert seen["params"]["bounded"] == "1"
    assert seen["params"]["limit"] == "1"
    assert seen["params"]["viewbox"] == "-64.05,11.2,-63.7,10.85"
    assert seen["agent"] == "margarita-listings/1.0"
    assert geocoder.request_count == 1


def test_geocode_returns_none_on_http_error_or_empty_result():
    failing = _geocoder(lambda request: httpx.Response(500))
    assert failing.geocode("Pampatar") is None
    assert failing.request_count == 1

    empty = _geocoder(lambda request: httpx.Response(200, json=[]))
    assert empty.geocode("Pampatar") is None

    garbage = _geocoder(lambda request: httpx.Response(200, text="not json"))
    assert garbage.geocode("Pampatar") is None


def test_blank_address_skips_the_request():
    geocoder = _geocoder(lambda request: httpx.Response(200, json=[]))
    assert geocoder.geocode("   ") is None
    assert geocoder.request_count == 0


def test_requests_are_spaced_by_minimum_interval():
    ticks = iter([0.0, 0.5, 1.1])
    sleeps = []
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))
    geocoder = NominatimGeocoder(client=client, sleep=sleeps.append, clock=lambda: next(ticks))

    geocoder.geocode("Porlamar")
    geocoder.geocode("Pampatar")

    assert sleeps == [pytest.approx(0.6)]
