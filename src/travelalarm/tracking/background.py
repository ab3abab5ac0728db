"""
Background location task adapter.

Mobile platforms deliver background location updates to a registered task callback
with a payload like:

    {"locations": [{"coords": {"latitude": 28.7, "longitude": 77.1}, "timestamp": 1767225600000}]}

This adapter turns such a payload into one engine sample (the first location) and
nothing else. It may be invoked on any thread, concurrently with the foreground poller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.core.time import from_epoch_ms
from travelalarm.domain.models import AlarmState

logger = logging.getLogger(__name__)


class BackgroundLocationAdapter:
    def __init__(self, engine: AlarmEngine):
        self._engine = engine

    def handle_task(self, data: Mapping[str, Any] | None, error: Any = None) -> AlarmState | None:
        """Task callback entrypoint; returns the resulting state, or None if nothing was submitted."""
        if error:
            logger.warning("Background location task reported an error: %s", error)
            return None
        if not data:
            return None

        locations = data.get("locations") or []
        if not locations:
            return None

        first = locations[0]
        coords = first.get("coords") if isinstance(first, Mapping) else None
        if not isinstance(coords, Mapping):
            logger.warning("Background location payload without coords; ignoring.")
            return None

        try:
            lat = float(coords["latitude"])
            lon = float(coords["longitude"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Background location payload has unusable coords: %r", coords)
            return None

        ts = first.get("timestamp")
        timestamp = from_epoch_ms(ts) if isinstance(ts, (int, float)) else None
        return self._engine.submit_position(lat, lon, timestamp=timestamp, source="background")
