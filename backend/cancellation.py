"""Cooperative cancellation for in-flight address lookups.

``requests`` cannot abort a call that is already on the wire, so
cancellation is cooperative: the orchestrator flips the token and the
transport checks it before sending and after receiving.
"""

import threading


class SearchCancelled(Exception):
    """Raised by a transport that noticed its token was cancelled.

    This is control flow, not a failure: it is never reported as an error.
    """


class CancelToken:
    """A one-shot, thread-safe cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SearchCancelled()
