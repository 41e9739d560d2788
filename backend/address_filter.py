"""Filtering and proximity ranking of raw Nominatim hits.

Nominatim answers an address query with a mix of real street addresses and
areas (cities, counties, states...).  Only the former are useful for a
weather lookup, so areas are dropped and what remains is sorted by distance
to the user when their location is known.
"""

import logging

from geo import as_coordinate, distance_km

logger = logging.getLogger(__name__)

# Place types that denote an area rather than an address.
EXCLUDED_TYPES = {"administrative", "state", "country", "city", "county", "region"}

# Address fields that pin a result to something more specific than an area.
_SPECIFIC_PLACE_FIELDS = ("building", "amenity", "shop", "office", "house_number")

# Number of suggestions shown to the user; the full list is kept for counts.
MAX_SUGGESTIONS = 10


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def is_street_address(place: dict) -> bool:
    """Return True if *place* is a specific address rather than an area."""
    addr = place.get("address")
    if not addr:
        return False

    if place.get("type") in EXCLUDED_TYPES:
        return False

    has_road = bool(addr.get("road"))
    has_specific_place = any(addr.get(field) for field in _SPECIFIC_PLACE_FIELDS)
    return has_road or has_specific_place


def filter_and_rank(
    candidates: list[dict],
    reference: tuple[float, float] | None = None,
) -> list[dict]:
    """Drop non-address hits and sort the rest nearest-first.

    With a *reference* coordinate every surviving record is copied with a
    ``distance`` key (km) and the copies are sorted ascending; ``sorted`` is
    stable, so ties keep provider order.  Without one, survivors keep
    provider order and get no ``distance``.

    Records whose ``lat``/``lon`` are missing or not numeric can't be ranked
    and are skipped rather than failing the whole search.

    Input records are never mutated and a new list is returned on every call.
    """
    valid = [place for place in candidates if is_street_address(place)]

    if reference is None:
        return [dict(place) for place in valid]

    ranked = []
    for place in valid:
        coord = as_coordinate((place.get("lat"), place.get("lon")))
        if coord is None:
            logger.debug("Skipping %r: no usable coordinates", place.get("display_name"))
            continue
        ranked.append({**place, "distance": distance_km(reference, coord)})

    ranked.sort(key=lambda p: p["distance"])
    return ranked


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


def _city_of(addr: dict) -> str | None:
    return addr.get("city") or addr.get("town") or addr.get("village")


def build_clean_address(addr: dict | None) -> str:
    """Build a short "123, Main Street, Springfield, IL, 62701, United States" label."""
    if not addr:
        return ""

    parts = [
        addr.get("house_number"),
        addr.get("road"),
        _city_of(addr),
        addr.get("state"),
        addr.get("postcode"),
        addr.get("country"),
    ]
    return ", ".join(p for p in parts if p)


def suggestion_label(place: dict) -> str:
    return build_clean_address(place.get("address")) or place.get("display_name", "")


def build_selection(place: dict) -> dict:
    """Build the record handed to the address-selected callback.

    Raises KeyError/ValueError if the record has no usable coordinates.
    """
    return {
        "latitude": float(place["lat"]),
        "longitude": float(place["lon"]),
        "display_name": place.get("display_name"),
        "address": place.get("address"),
        "type": place.get("type"),
    }


def summarize_place(place: dict) -> dict:
    """Compact view of a hit for diagnostics and API responses."""
    summary = {
        "display_name": place.get("display_name"),
        "lat": place.get("lat"),
        "lon": place.get("lon"),
        "address": place.get("address"),
        "type": place.get("type"),
    }
    if "distance" in place:
        summary["distance"] = round(place["distance"], 2)
    return summary
