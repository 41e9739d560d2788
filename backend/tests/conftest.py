"""Shared fixtures and helpers for backend tests.

All tests run against synthetic Nominatim / ipapi / Open-Meteo payloads --
no network calls.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

# Ensure the backend package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


# ---------------------------------------------------------------------------
# Synthetic Nominatim records
# ---------------------------------------------------------------------------

# Near the White House (38.8977, -77.0365)
WHITE_HOUSE = (38.8977, -77.0365)


def make_place(display_name, lat, lon, place_type="house", **address):
    """Build a raw Nominatim record; coordinates are strings like the real API."""
    return {
        "display_name": display_name,
        "lat": str(lat),
        "lon": str(lon),
        "type": place_type,
        "address": address,
    }


PENNSYLVANIA_DC = make_place(
    "1600, Pennsylvania Avenue Northwest, Washington, District of Columbia, 20500, United States",
    38.8976, -77.0366,
    house_number="1600", road="Pennsylvania Avenue Northwest", city="Washington",
    state="District of Columbia", postcode="20500", country="United States",
)

PENNSYLVANIA_PA = make_place(
    "1600, Pennsylvania Avenue, Pittsburgh, Pennsylvania, 15222, United States",
    40.4443, -79.9953,
    house_number="1600", road="Pennsylvania Avenue", town="Pittsburgh",
    state="Pennsylvania", postcode="15222", country="United States",
)

PENNSYLVANIA_CITY = make_place(
    "Pennsylvania, United States",
    40.9699, -77.7279,
    place_type="city",
    city="Pennsylvania", state="Pennsylvania", country="United States",
)


def fake_json_response(payload, status_code=200):
    """A stand-in for ``requests.Response`` returning *payload* from ``.json()``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status_code}")
    else:
        resp.raise_for_status.return_value = None
    return resp


@pytest.fixture(autouse=True)
def _clear_location_cache():
    from geocoding import clear_location_cache

    clear_location_cache()
    yield
    clear_location_cache()
