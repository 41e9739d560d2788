"""Geographic utilities shared by ranking and request shaping."""

import math

EARTH_RADIUS_KM = 6371.0


def distance_km(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Calculate the great-circle distance in km between two (lat, lon) points."""
    lat1, lon1 = a
    lat2, lon2 = b
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def as_coordinate(location) -> tuple[float, float] | None:
    """Coerce a location dict or (lat, lon) pair into a float coordinate.

    Accepts the dicts returned by IP geolocation (``latitude``/``longitude``
    keys).  Returns None when *location* is missing, incomplete or not
    numeric, so callers can fall back to unranked search.
    """
    if location is None:
        return None
    if isinstance(location, dict):
        lat = location.get("latitude")
        lon = location.get("longitude")
    else:
        try:
            lat, lon = location
        except (TypeError, ValueError):
            return None

    if lat is None or lon is None:
        return None
    try:
        return float(lat), float(lon)
    except (TypeError, ValueError):
        return None
