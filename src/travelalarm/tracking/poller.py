"""
Foreground position poller.

Periodically asks a position provider for the current location and feeds it to the
engine. It holds no trigger logic: all decisions happen behind `submit_position`.

Threading:
- `start()` runs the loop in a daemon thread; `stop()` signals it via an Event and joins.
- Provider failures are logged and the loop keeps going (GPS fixes fail routinely).
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Union

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.domain.models import AlarmState, PositionSample

logger = logging.getLogger(__name__)

ProviderResult = Union[PositionSample, tuple[float, float], None]


class ForegroundPoller:
    def __init__(
        self,
        engine: AlarmEngine,
        provider: Callable[[], ProviderResult],
        *,
        interval_seconds: float = 60,
    ):
        if float(interval_seconds) <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._engine = engine
        self._provider = provider
        self._interval = float(interval_seconds)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> AlarmState | None:
        """Fetch one position and submit it; returns the resulting state (None if no usable fix)."""
        try:
            fix = self._read_fix()
        except Exception as exc:
            logger.warning("Position provider failed: %s", str(exc))
            return None
        if fix is None:
            return None
        lat, lon, timestamp = fix
        return self._engine.submit_position(lat, lon, timestamp=timestamp, source="foreground")

    def _read_fix(self) -> tuple[float, float, datetime | None] | None:
        fix = self._provider()
        if fix is None:
            return None
        if isinstance(fix, PositionSample):
            return fix.latitude, fix.longitude, fix.timestamp
        lat, lon = fix
        return float(lat), float(lon), None

    def _loop(self) -> None:
        # First fix immediately, then on the interval.
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Foreground poll failed; will retry in %.0fs.", self._interval)
            self._stop.wait(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="foreground-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._thread = None
