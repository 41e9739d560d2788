"""Tests for the Flask JSON API."""

from unittest.mock import patch

import pytest
import requests

from tests.conftest import (
    PENNSYLVANIA_CITY,
    PENNSYLVANIA_DC,
    PENNSYLVANIA_PA,
    fake_json_response,
)


@pytest.fixture
def client():
    import app as app_module
    from data_flow import DataFlow

    app_module.app.config["TESTING"] = True
    with patch.object(app_module, "data_flow", DataFlow()):
        with app_module.app.test_client() as c:
            yield c


# ---------------------------------------------------------------------------
# /api/autocomplete
# ---------------------------------------------------------------------------

@patch("app.search_addresses")
def test_autocomplete_short_query_skips_search(mock_search, client):
    resp = client.get("/api/autocomplete?q=12")
    assert resp.status_code == 200
    assert resp.get_json()["suggestions"] == []
    mock_search.assert_not_called()


@patch("geocoding.requests.get")
def test_autocomplete_ranks_near_reference(mock_get, client):
    mock_get.return_value = fake_json_response([PENNSYLVANIA_PA, PENNSYLVANIA_CITY, PENNSYLVANIA_DC])
    resp = client.get(
        "/api/autocomplete",
        query_string={"q": "1600 Pennsylvania Ave", "lat": "38.8977", "lng": "-77.0365"},
    )

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["query"] == "1600 pennsylvania avenue"
    assert body["total"] == 2
    first = body["suggestions"][0]
    assert first["display_name"] == PENNSYLVANIA_DC["display_name"]
    assert first["label"].startswith("1600, Pennsylvania Avenue Northwest")
    assert "distance" in first

    # Three raw hits, one of them a city: the recorder counts what survived.
    flow = client.get("/api/data-flow").get_json()["autocomplete"]
    assert flow["total_results"] == flow["valid_addresses"] == 2


@patch("app.search_addresses")
def test_autocomplete_invalid_reference_is_unranked(mock_search, client):
    mock_search.return_value = []
    client.get("/api/autocomplete", query_string={"q": "main street", "lat": "abc", "lng": "1"})
    assert mock_search.call_args.args == ("main street", None)


@patch("app.search_addresses", side_effect=requests.ConnectionError("down"))
def test_autocomplete_failure_is_502(mock_search, client):
    resp = client.get("/api/autocomplete", query_string={"q": "main street"})
    body = resp.get_json()

    assert resp.status_code == 502
    assert "error" in body
    assert "suggestions" not in body

    flow = client.get("/api/data-flow").get_json()
    assert "error" in flow["autocomplete"]


@patch("app.search_addresses")
def test_autocomplete_failure_distinct_from_no_addresses(mock_search, client):
    """An empty result is a valid answer; a failed search is not."""
    mock_search.return_value = []
    empty = client.get("/api/autocomplete", query_string={"q": "main street"})

    mock_search.side_effect = requests.ConnectionError("down")
    failed = client.get("/api/autocomplete", query_string={"q": "main street"})

    assert empty.status_code == 200
    assert empty.get_json() == {"query": "main* street", "total": 0, "suggestions": []}
    assert failed.status_code != empty.status_code
    assert failed.get_json() != empty.get_json()


# ---------------------------------------------------------------------------
# /api/location
# ---------------------------------------------------------------------------

@patch("app.get_user_location")
def test_location_ignores_forwarded_header_without_proxy(mock_loc, client):
    """A client can't pick its own cache key by sending X-Forwarded-For."""
    mock_loc.return_value = {"latitude": 1.0, "longitude": 2.0}
    resp = client.get("/api/location", headers={"X-Forwarded-For": "8.8.8.8, 10.0.0.1"})

    assert resp.status_code == 200
    mock_loc.assert_called_once_with("127.0.0.1")
    assert client.get("/api/data-flow").get_json()["ip"]["data"]["latitude"] == 1.0


@patch("app.get_user_location")
def test_location_uses_forwarded_ip_behind_trusted_proxy(mock_loc, client):
    import app as app_module
    from werkzeug.middleware.proxy_fix import ProxyFix

    mock_loc.return_value = {"latitude": 1.0, "longitude": 2.0}
    with patch.object(app_module.app, "wsgi_app", ProxyFix(app_module.app.wsgi_app, x_for=1)):
        resp = client.get("/api/location", headers={"X-Forwarded-For": "10.0.0.9, 8.8.8.8"})

    assert resp.status_code == 200
    # One trusted hop: only the address that proxy appended is believed.
    mock_loc.assert_called_once_with("8.8.8.8")


@patch("app.get_user_location", side_effect=requests.Timeout("slow"))
def test_location_failure_is_502(mock_loc, client):
    resp = client.get("/api/location")
    assert resp.status_code == 502
    assert "error" in resp.get_json()


# ---------------------------------------------------------------------------
# /api/select
# ---------------------------------------------------------------------------

def test_select_returns_selection_record(client):
    resp = client.post("/api/select", json=PENNSYLVANIA_DC)
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["latitude"] == 38.8976
    assert body["longitude"] == -77.0366
    assert body["type"] == "house"
    assert client.get("/api/data-flow").get_json()["selected"]["data"]["address"]["city"] == "Washington"


def test_select_without_coordinates_is_400(client):
    resp = client.post("/api/select", json={"display_name": "nowhere"})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# /api/weather
# ---------------------------------------------------------------------------

def test_weather_requires_coordinates(client):
    resp = client.get("/api/weather?lat=1")
    assert resp.status_code == 400


@patch("app.get_weather_data")
def test_weather_rejects_bad_date(mock_weather, client):
    resp = client.get("/api/weather?lat=1&lng=2&date=tomorrow&time=10:00")
    assert resp.status_code == 400
    mock_weather.assert_not_called()


@patch("app.get_weather_data")
def test_weather_success(mock_weather, client):
    mock_weather.return_value = {"requested_time": "2024-07-04 10:00"}
    resp = client.get("/api/weather?lat=38.9&lng=-77.0&date=2024-07-04&time=10:00")

    assert resp.status_code == 200
    mock_weather.assert_called_once_with(38.9, -77.0, "2024-07-04", "10:00")
    assert client.get("/api/data-flow").get_json()["weather"]["data"] == mock_weather.return_value


@patch("app.default_date_time", return_value=("2024-01-02", "03:04"))
@patch("app.get_weather_data")
def test_weather_defaults_to_now(mock_weather, mock_now, client):
    mock_weather.return_value = {}
    client.get("/api/weather?lat=38.9&lng=-77.0")
    mock_weather.assert_called_once_with(38.9, -77.0, "2024-01-02", "03:04")


@patch("app.get_weather_data")
def test_weather_missing_hour_is_404(mock_weather, client):
    from weather import NoWeatherRecord

    mock_weather.side_effect = NoWeatherRecord("No weather record for 2024-07-04T10:00")
    resp = client.get("/api/weather?lat=38.9&lng=-77.0&date=2024-07-04&time=10:00")
    assert resp.status_code == 404


@patch("app.get_weather_data", side_effect=requests.HTTPError("HTTP 500"))
def test_weather_provider_failure_is_500(mock_weather, client):
    resp = client.get("/api/weather?lat=38.9&lng=-77.0&date=2024-07-04&time=10:00")
    assert resp.status_code == 500
    assert client.get("/api/data-flow").get_json()["weather"] == {"error": "Error fetching weather data"}
