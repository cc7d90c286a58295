"""Cooperative cancellation shared between a request and its worker."""

from __future__ import annotations

import threading

from archive_search.errors import ErrorKind, SearchError


class CancellationToken:
    """Thread-safe flag checked by scan loops between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise INTERRUPTED once cancellation has been requested."""
        if self._event.is_set():
            raise SearchError(ErrorKind.INTERRUPTED, "Operation was cancelled.")


def check_cancelled(cancel: CancellationToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
