"""IP geolocation (ipapi.co) and US address search via Nominatim (OpenStreetMap).

Nominatim is free but understands messy input poorly, so queries are
rewritten by ``query_builder`` and results are filtered and re-ranked
locally by ``address_filter``.  No business logic beyond request shaping
lives here.
"""

import ipaddress
import logging
import threading
import time

import requests

from address_filter import filter_and_rank
from cancellation import CancelToken
from geo import as_coordinate
from query_builder import normalize

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
IPAPI_URL = "https://ipapi.co/json/"
IPAPI_IP_URL = "https://ipapi.co/{ip}/json/"

_HEADERS = {"User-Agent": "weather-app/1.0"}
_TIMEOUT = 10

# Nominatim returns plenty of areas and near-misses; ask for many hits so
# enough real addresses survive filtering.
SEARCH_LIMIT = 50
COUNTRY_CODES = "us"

# Half-size (degrees) of the box used to bias results toward the user.
VIEWBOX_BUFFER_DEG = 10


# ---------------------------------------------------------------------------
# IP geolocation
# ---------------------------------------------------------------------------

# An IP's approximate location barely moves; cache lookups for an hour so a
# page reload doesn't cost another round-trip to the rate-limited API.
_LOCATION_TTL = 60 * 60  # 1 hour

# One entry per client IP; capped so a flood of distinct IPs can't grow it
# without bound.
_LOCATION_MAX_ENTRIES = 1000

_location_cache: dict[str | None, tuple[float, dict]] = {}
_location_lock = threading.Lock()


def _is_public_ip(ip: str | None) -> bool:
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.is_global


def get_user_location(ip: str | None = None) -> dict:
    """Return the approximate location of *ip* (or of this host if None).

    Private and loopback addresses can't be geolocated, so they fall back
    to the caller-less endpoint.

    Returns dict: ``{latitude, longitude, city, region, country, postal, timezone}``
    """
    if not _is_public_ip(ip):
        ip = None

    now = time.time()
    with _location_lock:
        if ip in _location_cache:
            ts, data = _location_cache[ip]
            if now - ts < _LOCATION_TTL:
                return data

    url = IPAPI_IP_URL.format(ip=ip) if ip else IPAPI_URL
    resp = requests.get(url, headers=_HEADERS, timeout=_TIMEOUT)
    resp.raise_for_status()
    raw = resp.json()
    if raw.get("error"):
        # ipapi reports quota and lookup problems with a 200 + error body
        raise ValueError(raw.get("reason") or "IP geolocation failed")

    data = {
        "latitude": raw.get("latitude"),
        "longitude": raw.get("longitude"),
        "city": raw.get("city"),
        "region": raw.get("region"),
        "country": raw.get("country_name"),
        "postal": raw.get("postal"),
        "timezone": raw.get("timezone"),
    }

    with _location_lock:
        _store_location(ip, now, data)

    logger.info(
        "Location detected: %s, %s (%s, %s)",
        data["latitude"], data["longitude"], data["city"], data["region"],
    )
    return data


def _store_location(ip: str | None, now: float, data: dict) -> None:
    """Insert into the location cache.  Caller must hold ``_location_lock``."""
    expired = [k for k, (ts, _) in _location_cache.items() if now - ts >= _LOCATION_TTL]
    for k in expired:
        del _location_cache[k]

    # Evict oldest entries if we'd exceed the cap.
    while (
        _location_cache
        and len(_location_cache) >= _LOCATION_MAX_ENTRIES
        and ip not in _location_cache
    ):
        oldest_key = min(_location_cache, key=lambda k: _location_cache[k][0])
        del _location_cache[oldest_key]

    _location_cache[ip] = (now, data)


def clear_location_cache() -> None:
    with _location_lock:
        _location_cache.clear()


# ---------------------------------------------------------------------------
# Address search
# ---------------------------------------------------------------------------


def build_search_params(query: str, reference=None) -> dict:
    """Build Nominatim query-string parameters for a normalized *query*.

    When a *reference* coordinate is known, a viewbox around it biases
    results toward the user without excluding anything (``bounded=0``).
    Ranking is redone locally either way.
    """
    params = {
        "format": "json",
        "q": query,
        "limit": SEARCH_LIMIT,
        "addressdetails": 1,
        "countrycodes": COUNTRY_CODES,
    }

    ref = as_coordinate(reference)
    if ref is not None:
        lat, lon = ref
        b = VIEWBOX_BUFFER_DEG
        params["viewbox"] = f"{lon - b},{lat + b},{lon + b},{lat - b}"
        params["bounded"] = 0

    return params


def fetch_candidates(
    query: str,
    reference=None,
    token: CancelToken | None = None,
) -> list[dict]:
    """Fetch raw Nominatim records for an already-normalized *query*.

    Raises ``SearchCancelled`` if *token* is cancelled before the request is
    sent or by the time the response arrives.
    """
    if token is not None:
        token.raise_if_cancelled()

    resp = requests.get(
        NOMINATIM_URL,
        params=build_search_params(query, reference),
        headers=_HEADERS,
        timeout=_TIMEOUT,
    )

    if token is not None:
        token.raise_if_cancelled()

    resp.raise_for_status()
    return resp.json()


def search_addresses(
    query: str,
    reference=None,
    token: CancelToken | None = None,
) -> list[dict]:
    """Normalize *query*, search Nominatim and return ranked street addresses.

    Returns an empty list, without a network call, when the query has no
    searchable content.
    """
    search_query = normalize(query)
    if not search_query:
        return []

    raw = fetch_candidates(search_query, reference, token)
    results = filter_and_rank(raw, as_coordinate(reference))
    logger.info(
        "Address search %r: %d raw hits, %d addresses", search_query, len(raw), len(results)
    )
    return results
