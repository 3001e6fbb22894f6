from types import SimpleNamespace

import httpx
import pytest

from trailpress import geocode as geocode_module
from trailpress.config import Geocoding
from trailpress.errors import GeocodingError
from trailpress.geocode import Geocoder, NullGeocoder, make_geocoder
from trailpress.models import Coordinate

URL = "https://geo.example.org/reverse"
CHAMONIX = Coordinate(lon=6.8694, lat=45.9237)


def geocoder_for(handler, attempts=2):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return Geocoder(client, URL, locale="fr", zoom=3, attempts=attempts, backoff=0, min_interval=0)


def test_returns_country_and_sends_query():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"address": {"country": "France", "country_code": "fr"}})

    assert geocoder_for(handler).reverse_geocode(CHAMONIX) == "France"

    params = requests[0].url.params
    assert params["lat"] == "45.923700"
    assert params["lon"] == "6.869400"
    assert params["zoom"] == "3"
    assert params["accept-language"] == "fr"
    assert params["format"] == "json"


def test_nearby_centroids_share_one_lookup():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"address": {"country": "France"}})

    geocoder = geocoder_for(handler)
    geocoder.reverse_geocode(CHAMONIX)
    geocoder.reverse_geocode(Coordinate(lon=6.86941, lat=45.92372))
    geocoder.reverse_geocode(Coordinate(lon=7.7491, lat=46.0207))

    assert len(calls) == 2


def test_server_errors_are_retried():
    responses = iter([
        httpx.Response(503),
        httpx.Response(200, json={"address": {"country": "Schweiz"}}),
    ])

    assert geocoder_for(lambda request: next(responses)).reverse_geocode(CHAMONIX) == "Schweiz"


def test_network_failure_after_all_attempts():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GeocodingError, match="connection refused"):
        geocoder_for(handler, attempts=3).reverse_geocode(CHAMONIX)
    assert len(calls) == 3


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(403)

    with pytest.raises(GeocodingError, match="403"):
        geocoder_for(handler).reverse_geocode(CHAMONIX)
    assert len(calls) == 1


@pytest.mark.parametrize("response", [
    httpx.Response(200, content=b"<html>rate limited</html>"),
    httpx.Response(200, json={"error": "Unable to geocode"}),
    httpx.Response(200, json={"address": {"state": "Haute-Savoie"}}),
    httpx.Response(200, json=["France"]),
])
def test_unusable_responses(response):
    with pytest.raises(GeocodingError):
        geocoder_for(lambda request: response).reverse_geocode(CHAMONIX)


def test_failures_are_not_cached():
    responses = iter([
        httpx.Response(404),
        httpx.Response(200, json={"address": {"country": "France"}}),
    ])
    geocoder = geocoder_for(lambda request: next(responses))

    with pytest.raises(GeocodingError):
        geocoder.reverse_geocode(CHAMONIX)
    assert geocoder.reverse_geocode(CHAMONIX) == "France"


def test_disabled_geocoding():
    geocoder = make_geocoder(Geocoding(enabled=False))

    assert isinstance(geocoder, NullGeocoder)
    assert geocoder.reverse_geocode(CHAMONIX) == ""


def test_from_config_sets_timeout_and_user_agent():
    geocoder = make_geocoder(Geocoding(timeout=3.5, user_agent="hikes/1.0", min_interval=2.0))
    try:
        assert geocoder.client.timeout.read == 3.5
        assert geocoder.client.headers["User-Agent"] == "hikes/1.0"
        assert geocoder.min_interval == 2.0
    finally:
        geocoder.close()


def test_malformed_url_is_a_geocoding_error():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.InvalidURL("Invalid port: 'x'")

    with pytest.raises(GeocodingError, match="bad geocoding url"):
        geocoder_for(handler, attempts=3).reverse_geocode(CHAMONIX)
    assert len(calls) == 1


def test_requests_are_spaced_out(monkeypatch):
    now = [100.0]
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        now[0] += seconds

    monkeypatch.setattr(geocode_module, "time", SimpleNamespace(monotonic=lambda: now[0], sleep=fake_sleep))
    client = httpx.Client(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"address": {"country": "France"}})))
    geocoder = Geocoder(client, URL, attempts=1, backoff=0, min_interval=1.0)

    geocoder.reverse_geocode(CHAMONIX)
    now[0] += 0.25
    geocoder.reverse_geocode(Coordinate(lon=7.7491, lat=46.0207))
    geocoder.reverse_geocode(CHAMONIX)

    assert sleeps == [0.75]
