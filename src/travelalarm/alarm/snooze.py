"""
Snooze deadline tracking.

A single, engine-wide deadline: while it is set and in the future, no checkpoint may
trigger. Expiry is lazy (checked on read), so no timer thread is needed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

# One year; anything longer is a typo, not a snooze.
MAX_SNOOZE_MINUTES = 60 * 24 * 365


def snooze_deadline(minutes: float, now: datetime) -> datetime:
    """Return `now + minutes`, or raise ValueError if `minutes` is not a usable duration."""
    minutes = float(minutes)
    if not math.isfinite(minutes) or minutes <= 0:
        raise ValueError("snooze minutes must be a finite number > 0")
    if minutes > MAX_SNOOZE_MINUTES:
        raise ValueError(f"snooze minutes must be <= {MAX_SNOOZE_MINUTES}")
    try:
        return now + timedelta(minutes=minutes)
    except OverflowError as exc:
        raise ValueError(f"snooze deadline out of range: {exc}") from exc


@dataclass
class SnoozeTimer:
    _deadline: datetime | None = field(default=None, init=False)

    @property
    def deadline(self) -> datetime | None:
        return self._deadline

    def snooze(self, minutes: float, now: datetime) -> datetime:
        """Set the deadline to `now + minutes`, replacing any existing one."""
        self._deadline = snooze_deadline(minutes, now)
        return self._deadline

    def clear(self) -> None:
        self._deadline = None

    def is_active(self, now: datetime) -> bool:
        if self._deadline is None:
            return False
        if now < self._deadline:
            return True
        self._deadline = None
        return False
