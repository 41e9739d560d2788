"""Developer-facing record of what flowed through each pipeline phase.

Phases, in the order a user drives them:
  1. ``ip``           -- IP geolocation on page load
  2. ``autocomplete`` -- address search results as the user types
  3. ``selected``     -- the address the user picked
  4. ``weather``      -- the weather record fetched for it

Each phase holds either ``{"data": ...}`` or ``{"error": "..."}``.  The
recorder doubles as the results sink and error reporter for address search.
"""

import copy
import logging
import threading

from address_filter import summarize_place

logger = logging.getLogger(__name__)

PHASES = ("ip", "autocomplete", "selected", "weather")

# Autocomplete results shown in the log; the counts cover the full list.
PREVIEW_RESULTS = 3


class DataFlow:
    """Thread-safe snapshot of the latest data seen in each phase."""

    def __init__(self):
        self._lock = threading.Lock()
        self._phases: dict = {phase: None for phase in PHASES}

    def snapshot(self) -> dict:
        """Return a deep copy of the current state of every phase."""
        with self._lock:
            return copy.deepcopy(self._phases)

    def _set(self, phase, value):
        with self._lock:
            self._phases[phase] = value

    # -- phase 1 ------------------------------------------------------------

    def update_ip_data(self, ip_data: dict) -> None:
        self._set("ip", {"data": dict(ip_data)})

    def show_ip_error(self, exc=None) -> None:
        if exc is not None:
            logger.warning("IP geolocation error: %s", exc)
        self._set("ip", {"error": "Error loading IP geolocation"})

    # -- phase 2 ------------------------------------------------------------

    def update_autocomplete_data(self, results: list[dict], total_results: int | None = None) -> None:
        """Record a completed search.

        *total_results* is the number of addresses that survived filtering;
        defaults to ``len(results)``.
        """
        self._set(
            "autocomplete",
            {
                "data": [summarize_place(p) for p in results[:PREVIEW_RESULTS]],
                "total_results": len(results) if total_results is None else total_results,
                "valid_addresses": len(results),
            },
        )

    def show_autocomplete_error(self, exc) -> None:
        logger.warning("Autocomplete error: %s", exc)
        self._set("autocomplete", {"error": f"Error searching addresses: {exc}"})

    # -- phase 3 ------------------------------------------------------------

    def update_selected_address(self, selection: dict) -> None:
        addr = selection.get("address") or {}
        self._set(
            "selected",
            {
                "data": {
                    "display_name": selection.get("display_name"),
                    "latitude": selection.get("latitude"),
                    "longitude": selection.get("longitude"),
                    "address": {
                        "house_number": addr.get("house_number"),
                        "road": addr.get("road"),
                        "city": addr.get("city") or addr.get("town") or addr.get("village"),
                        "state": addr.get("state"),
                        "postcode": addr.get("postcode"),
                        "country": addr.get("country"),
                    },
                    "type": selection.get("type"),
                }
            },
        )

    # -- phase 4 ------------------------------------------------------------

    def update_weather_data(self, weather: dict) -> None:
        self._set("weather", {"data": copy.deepcopy(weather)})

    def show_weather_error(self, exc=None) -> None:
        if exc is not None:
            logger.warning("Weather error: %s", exc)
        self._set("weather", {"error": "Error fetching weather data"})
