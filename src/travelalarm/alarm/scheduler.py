"""
Update scheduler: the single serialization point of the engine.

Two producers feed position samples concurrently: the foreground poll loop and the
OS-driven background callback. User commands (Stop/Snooze) and checkpoint edits arrive
from yet other threads. All of them become messages passed to `submit()`, which runs
the processor under one lock for the full read-evaluate-write-publish sequence.

Threading:
- FIFO per producer; no ordering guarantee across producers.
- Event handlers run while the lock is held. A handler that submits a new message
  (e.g. an auto-stop subscriber) is not blocked: the message is queued in a mailbox
  and processed by the same thread right after the current one, before the lock is
  released.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable

from travelalarm.domain.models import PositionSample, SampleSource

logger = logging.getLogger(__name__)


class UpdateScheduler:
    def __init__(self, process: Callable[[Any], Any], *, clock: Callable[[], datetime]):
        self._process = process
        self._clock = clock
        self._lock = threading.Lock()
        self._local = threading.local()
        self._mailbox: deque[Any] = deque()
        self._processed = 0

    @property
    def processed(self) -> int:
        """Number of messages processed so far."""
        return self._processed

    def submit(self, message: Any) -> Any:
        """Process `message` under the engine lock and return the processor's result.

        Returns None for a message deferred from inside an event handler; it is
        processed before the outer `submit()` returns.
        """
        if getattr(self._local, "active", False):
            self._mailbox.append(message)
            return None

        with self._lock:
            self._local.active = True
            try:
                result = self._run(message)
                while self._mailbox:
                    self._run(self._mailbox.popleft())
            finally:
                self._local.active = False
                if self._mailbox:
                    logger.warning("Dropping %d deferred message(s) after a failed transition.", len(self._mailbox))
                    self._mailbox.clear()
        return result

    def _run(self, message: Any) -> Any:
        self._processed += 1
        return self._process(message)

    def submit_sample(
        self,
        latitude: float,
        longitude: float,
        *,
        timestamp: datetime | None = None,
        source: SampleSource = "foreground",
    ) -> Any:
        sample = PositionSample(
            latitude=latitude,
            longitude=longitude,
            timestamp=timestamp if timestamp is not None else self._clock(),
            source=source,
        )
        return self.submit(sample)

    def submit_foreground(self, latitude: float, longitude: float, timestamp: datetime | None = None) -> Any:
        return self.submit_sample(latitude, longitude, timestamp=timestamp, source="foreground")

    def submit_background(self, latitude: float, longitude: float, timestamp: datetime | None = None) -> Any:
        return self.submit_sample(latitude, longitude, timestamp=timestamp, source="background")
