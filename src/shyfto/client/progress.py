"""Progress tracking for client transfers.

This module provides:
- ProgressTracker: monotonic percentage for one transfer
- AggregateProgress: byte-weighted overall percentage across several files
"""

from __future__ import annotations

import threading
from collections.abc import Mapping

from shyfto.core.types import ProgressCallback


class ProgressTracker:
    """Monotonic [0, 100] progress for one in-flight transfer.

    Values below the last reported one are dropped, so a strategy switch
    mid-transfer never moves the bar backwards. ``reset`` is the one
    exception and is reserved for failure paths.
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._value = 0

    @property
    def value(self) -> int:
        """Last reported percentage."""
        return self._value

    def report(self, value: float) -> None:
        """Report a new percentage if it moves the bar forward."""
        clamped = max(0, min(100, int(value)))
        if clamped <= self._value:
            return
        self._value = clamped
        if self._callback is not None:
            self._callback(clamped)

    def complete(self) -> None:
        """Report 100."""
        self.report(100)

    def reset(self) -> None:
        """Return to 0 after a failure."""
        self._value = 0
        if self._callback is not None:
            self._callback(0)


class AggregateProgress:
    """Overall progress across several files weighted by their sizes.

    Each file contributes ``size / total`` of the overall value. When the
    sizes sum to zero every file gets an equal share.
    """

    def __init__(
        self,
        sizes: Mapping[str, int],
        callback: ProgressCallback | None = None,
    ) -> None:
        total = sum(max(0, s) for s in sizes.values())
        if total > 0:
            self._weights = {k: max(0, s) / total for k, s in sizes.items()}
        else:
            share = 1 / len(sizes) if sizes else 0.0
            self._weights = {k: share for k in sizes}
        self._percent = {k: 0 for k in sizes}
        self._tracker = ProgressTracker(callback)
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        """Current overall percentage."""
        return self._tracker.value

    def update(self, key: str, percent: int) -> None:
        """Record one file's progress and report the weighted total."""
        with self._lock:
            self._percent[key] = max(self._percent[key], max(0, min(100, percent)))
            overall = sum(self._weights[k] * p for k, p in self._percent.items())
            if all(p == 100 for p in self._percent.values()):
                overall = 100
            self._tracker.report(overall)

    def for_file(self, key: str) -> ProgressCallback:
        """Return a progress callback bound to one file."""

        def callback(percent: int) -> None:
            self.update(key, percent)

        return callback

    def reset(self) -> None:
        """Return to 0 after a failure."""
        with self._lock:
            self._percent = {k: 0 for k in self._percent}
            self._tracker.reset()
