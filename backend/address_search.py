"""Debounced, single-flight address autocomplete session.

One ``AddressSearch`` lives for as long as its address input does.  Every
keystroke cancels whatever the previous keystroke started (the debounce
wait and any lookup still on the wire) before anything new is scheduled,
so at most one search is ever active and results always belong to the
latest input.

All state is touched only from the event loop.  The blocking HTTP lookup
runs on the default executor via ``asyncio.to_thread``; a lookup that
finishes after being superseded is dropped because its task was cancelled,
and a lookup that finishes after the user picked a suggestion is dropped by
the ``is_location_selected`` latch.

Lookups settle into a tagged ``SearchOutcome`` (ok / cancelled / failed)
which is turned into state changes.  Nothing raises out to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from address_filter import (
    MAX_SUGGESTIONS,
    build_selection,
    filter_and_rank,
    suggestion_label,
)
from cancellation import CancelToken, SearchCancelled
from geo import as_coordinate
from geocoding import fetch_candidates
from query_builder import normalize

logger = logging.getLogger(__name__)

# Wait this long after the last keystroke before hitting Nominatim.
DEBOUNCE_SECONDS = 0.3

# Shorter inputs match too much to be useful and only load the geocoder.
MIN_QUERY_LENGTH = 3

STATUS_IDLE = "idle"
STATUS_SEARCHING = "searching"

OUTCOME_OK = "ok"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_FAILED = "failed"


# ---------------------------------------------------------------------------
# Lookup outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchOutcome:
    kind: str
    results: list = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def ok(cls, results: list) -> "SearchOutcome":
        return cls(OUTCOME_OK, results=results)

    @classmethod
    def cancelled(cls) -> "SearchOutcome":
        return cls(OUTCOME_CANCELLED)

    @classmethod
    def failed(cls, error: Exception) -> "SearchOutcome":
        return cls(OUTCOME_FAILED, error=error)


def _log_error(exc: Exception) -> None:
    logger.error("Autocomplete error: %s", exc, exc_info=exc)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class AddressSearch:
    """Address autocomplete state machine: ``idle -> searching -> idle``.

    *lookup* is called as ``lookup(query, reference, token)`` with the
    normalized query, the user's coordinate (or None) and a fresh
    ``CancelToken``, and must return raw Nominatim records.  It is a
    blocking callable and runs off the event loop.

    *on_results* receives the full ranked list after each completed search,
    *on_select* the selection record when a suggestion is picked, and
    *on_error* every lookup failure (cancellations are not failures).
    """

    def __init__(
        self,
        lookup=fetch_candidates,
        on_results=None,
        on_select=None,
        on_error=None,
        debounce: float = DEBOUNCE_SECONDS,
        min_length: int = MIN_QUERY_LENGTH,
    ):
        self.lookup = lookup
        self.on_results = on_results
        self.on_select = on_select
        self.on_error = on_error or _log_error
        self.debounce = debounce
        self.min_length = min_length

        self.user_location = None
        self.value = ""
        self.status = STATUS_IDLE
        self.suggestions: list[dict] = []
        self.results: list[dict] = []
        self.is_location_selected = False

        self._pending: asyncio.Task | None = None
        self._token: CancelToken | None = None

    def set_user_location(self, location) -> None:
        """Set the location used to rank results (None for unranked search)."""
        self.user_location = location

    # -- keystrokes ---------------------------------------------------------

    def on_input(self, text: str) -> None:
        """Handle one change of the input's text.

        Must be called from a running event loop.
        """
        self.value = text
        val = text.strip()

        self._cancel_pending()
        # Typing again invalidates any earlier pick.
        self.is_location_selected = False

        if len(val) < self.min_length or not normalize(val):
            self.suggestions = []
            self.status = STATUS_IDLE
            return

        self.status = STATUS_SEARCHING
        self._pending = asyncio.get_running_loop().create_task(
            self._debounced_search(val)
        )

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._token is not None:
            self._token.cancel()
            self._token = None

    async def _debounced_search(self, val: str) -> None:
        task = asyncio.current_task()
        try:
            await asyncio.sleep(self.debounce)
            token = CancelToken()
            self._token = token
            outcome = await self._lookup(val, token)
        except asyncio.CancelledError:
            if self._pending is task:
                self._pending = None
                self._token = None
                self.status = STATUS_IDLE
            raise

        if self._pending is not task:
            # Superseded while the lookup was finishing.
            return
        self._pending = None
        self._token = None
        self._apply(outcome)

    async def _lookup(self, val: str, token: CancelToken) -> SearchOutcome:
        query = normalize(val)
        reference = as_coordinate(self.user_location)
        try:
            raw = await asyncio.to_thread(self.lookup, query, reference, token)
            results = filter_and_rank(raw, reference)
        except SearchCancelled:
            return SearchOutcome.cancelled()
        except Exception as exc:
            return SearchOutcome.failed(exc)

        logger.info(
            "Autocomplete %r: %d raw hits, %d addresses", query, len(raw), len(results)
        )
        return SearchOutcome.ok(results)

    def _apply(self, outcome: SearchOutcome) -> None:
        self.status = STATUS_IDLE

        if outcome.kind == OUTCOME_CANCELLED:
            return
        if outcome.kind == OUTCOME_FAILED:
            self._report(outcome.error)
            return
        if self.is_location_selected:
            # The user picked a suggestion while this lookup was in flight.
            return

        self.results = outcome.results
        self.suggestions = outcome.results[:MAX_SUGGESTIONS]
        if self.on_results is not None:
            try:
                self.on_results(outcome.results)
            except Exception as exc:
                self._report(exc)

    def _report(self, exc: Exception) -> None:
        try:
            self.on_error(exc)
        except Exception:
            logger.exception("Error reporter failed")

    # -- selection ----------------------------------------------------------

    def select_address(self, place: dict) -> dict:
        """Finalize *place* as the chosen address and return its selection record."""
        self.is_location_selected = True
        self._cancel_pending()

        self.value = suggestion_label(place)
        self.suggestions = []
        self.status = STATUS_IDLE

        selection = build_selection(place)
        if self.on_select is not None:
            self.on_select(selection)
        return selection

    # -- lifecycle ----------------------------------------------------------

    async def wait(self) -> None:
        """Wait until no search is pending (finished, failed or cancelled)."""
        while self._pending is not None:
            task = self._pending
            await asyncio.wait({task})
            if self._pending is task:
                self._pending = None

    def close(self) -> None:
        """Cancel any pending search and clear suggestions."""
        self._cancel_pending()
        self.suggestions = []
        self.status = STATUS_IDLE
