"""
Time parsing, timezone normalization and clocks.

The engine compares snooze deadlines against "now", so every timestamp it sees is a
timezone-aware datetime; mixing naive and aware values would raise at comparison time.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Default engine clock: aware UTC wall time."""
    return datetime.now(timezone.utc)


def ensure_tz(dt: datetime, tz_name: str = "UTC") -> datetime:
    """Ensure `dt` has tzinfo; attach `tz_name` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt


def parse_datetime(value: str, tz_name: str = "UTC") -> datetime:
    """Parse ISO-8601 datetime string and ensure tzinfo is present.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - If the parsed value is naive, `tz_name` is attached.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    return ensure_tz(dt, tz_name)


def from_epoch_ms(value: float) -> datetime:
    """Convert a millisecond epoch (as delivered by mobile location APIs) to aware UTC."""
    return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)


class ManualClock:
    """A settable clock for replays and tests.

    Instances are callable, so they can be passed anywhere an engine expects `clock()`.
    """

    def __init__(self, start: datetime | None = None):
        self._now = ensure_tz(start) if start is not None else utc_now()
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_tz(value)

    def advance(self, *, minutes: float = 0, seconds: float = 0) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(minutes=minutes, seconds=seconds)
            return self._now
