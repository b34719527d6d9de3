"""Throttled progress reporting and cooperative cancellation."""

from __future__ import annotations

import time

from proglog import ProgressBarLogger

from runcompare.errors import Cancelled


class ProgressReporter:
    """Forwards monotonic 0-1 progress to a callback at most every *interval* seconds.

    Every report is also a cancellation checkpoint.
    """

    def __init__(
        self,
        callback: callable | None = None,
        cancel_flag: callable | None = None,
        interval: float = 0.25,
        clock: callable = time.monotonic,
    ):
        self._callback = callback
        self._cancel_flag = cancel_flag
        self._interval = interval
        self._clock = clock
        self._last_time: float | None = None
        self.value = 0.0

    def check_cancel(self) -> None:
        if self._cancel_flag and self._cancel_flag():
            raise Cancelled()

    def report(self, fraction: float, force: bool = False, check: bool = True) -> None:
        if check:
            self.check_cancel()
        fraction = max(self.value, min(1.0, max(0.0, fraction)))
        self.value = fraction
        if not self._callback:
            return
        now = self._clock()
        due = self._last_time is None or now - self._last_time >= self._interval
        if force or due or fraction >= 1.0:
            self._last_time = now
            self._callback(fraction)

    def stage(self, start: float, end: float) -> callable:
        """Return a callable mapping 0-1 within a stage onto [start, end]."""

        def _report(sub: float) -> None:
            self.report(start + (end - start) * min(1.0, max(0.0, sub)))

        return _report

    def finish(self) -> None:
        # Output is already in place; too late to cancel
        self.report(1.0, force=True, check=False)


class EncodeLogger(ProgressBarLogger):
    """proglog logger handed to moviepy's writers; forwards bar progress."""

    def __init__(self, on_fraction: callable):
        super().__init__()
        self._on_fraction = on_fraction

    def bars_callback(self, bar, attr, value, old_value=None):
        if attr != "index":
            return
        total = self.bars[bar].get("total")
        if total:
            self._on_fraction(min(1.0, (value + 1) / total))
