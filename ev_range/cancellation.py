"""Cooperative cancellation for long-running analyses."""

from __future__ import annotations

import threading

from ev_range.errors import AnalysisCancelled


class CancellationToken:
    """Thread-safe flag checked by the pipeline between chunks and batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis was cancelled")
