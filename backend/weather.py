"""Historical hourly weather from the Open-Meteo archive API.

Fetches one day of hourly observations for a coordinate and picks out the
hour the user asked for.
"""

from datetime import datetime

import requests

ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
_TIMEOUT = 15

HOURLY_FIELDS = ("temperature_2m", "precipitation", "wind_speed_10m")

UNITS = {
    "temperature": "°C",
    "precipitation": "mm/hr",
    "wind_speed": "km/h",
}

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


class NoWeatherRecord(LookupError):
    """The archive returned no observation for the requested hour."""


def default_date_time(now: datetime | None = None) -> tuple[str, str]:
    """Return ``(date, time)`` strings for *now* (the picker's initial value)."""
    now = now or datetime.now()
    return now.strftime(DATE_FORMAT), now.strftime(TIME_FORMAT)


def parse_date_time(date: str, time: str) -> datetime:
    """Validate ``YYYY-MM-DD`` / ``HH:MM`` strings.  Raises ValueError."""
    return datetime.strptime(f"{date} {time}", f"{DATE_FORMAT} {TIME_FORMAT}")


def get_weather_data(latitude: float, longitude: float, date: str, time: str) -> dict:
    """Fetch the hourly record matching *date* and *time* at a location.

    Only the hour is matched; minutes are kept in ``requested_time`` for
    display.  Raises ValueError for malformed input and LookupError when the
    archive has no record for that hour (``NoWeatherRecord``).
    """
    when = parse_date_time(date, time)
    day = when.strftime(DATE_FORMAT)

    resp = requests.get(
        ARCHIVE_URL,
        params={
            "latitude": latitude,
            "longitude": longitude,
            "start_date": day,
            "end_date": day,
            "hourly": ",".join(HOURLY_FIELDS),
        },
        timeout=_TIMEOUT,
    )
    resp.raise_for_status()
    data = resp.json()

    hourly = data.get("hourly") or {}
    times = hourly.get("time") or []
    wanted = f"{day}T{when.hour:02d}:00"
    try:
        idx = times.index(wanted)
    except ValueError:
        raise NoWeatherRecord(f"No weather record for {wanted}") from None

    return {
        "latitude": data.get("latitude"),
        "longitude": data.get("longitude"),
        "timezone": data.get("timezone"),
        "requested_time": f"{day} {when.hour:02d}:{when.minute:02d}",
        "hourly_data": {
            "time": times[idx],
            **{name: _value_at(hourly.get(name), idx) for name in HOURLY_FIELDS},
        },
        "units": dict(UNITS),
    }


def _value_at(values, idx):
    if not values or idx >= len(values):
        return None
    return values[idx]
