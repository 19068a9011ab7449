"""A coarse millisecond clock with an optional background updater."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

CHECK_UPDATE_INTERVAL = timedelta(milliseconds=200)

_ONE_MILLISECOND = timedelta(milliseconds=1)


class _Clock:
    """Milliseconds elapsed since a fixed anchor, never going backwards."""

    def __init__(self) -> None:
        self._anchor = time.monotonic()
        self._recent = 0
        self._lock = threading.Lock()
        self._updater_started = False

    def now(self) -> int:
        elapsed = max(0.0, time.monotonic() - self._anchor)
        millis = duration_to_millis(elapsed)
        with self._lock:
            if self._recent > millis:
                return self._recent
            self._recent = millis
            return millis

    def recent(self) -> int:
        with self._lock:
            return self._recent

    def ensure_updater(self) -> None:
        with self._lock:
            if self._updater_started:
                return
            self._updater_started = True
        thread = threading.Thread(target=self._run_updater, name="time updater", daemon=True)
        thread.start()

    def _run_updater(self) -> None:
        interval = CHECK_UPDATE_INTERVAL.total_seconds()
        while True:
            time.sleep(interval)
            self.now()


_CLOCK = _Clock()


def duration_to_millis(duration: timedelta | float) -> int:
    """Convert a duration (a timedelta or seconds) to whole milliseconds, truncating."""
    if not isinstance(duration, timedelta):
        duration = timedelta(seconds=duration)
    if duration < timedelta(0):
        raise ValueError("duration must not be negative")
    return duration // _ONE_MILLISECOND


def now_millis() -> int:
    """Return milliseconds since a fixed point in the past; the value never decreases."""
    return _CLOCK.now()


def recent_millis() -> int:
    """Return the most recent value produced by :func:`now_millis`."""
    return _CLOCK.recent()


def ensure_updater() -> None:
    """Start, once, a background thread that refreshes the clock periodically."""
    _CLOCK.ensure_updater()