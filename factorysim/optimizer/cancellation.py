"""
Cooperative cancellation for long-running searches.

A token is shared between the caller and a search; the search checks it
between generations (or iterations) and returns its best result so far
once it is set.
"""

import threading


class CancellationToken:
    """Thread-safe flag requesting that a search stop early."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
