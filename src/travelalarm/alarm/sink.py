"""
Alarm sink binding.

The engine never plays sound or vibrates; an external sink does. `bind_alarm_sink`
wires a sink to the engine's events so it is started once per `AlarmTriggered` and
stopped once per matching `AlarmDisarmed`, whatever the number of subscribers or
duplicate deliveries.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.alarm.events import AlarmDisarmed, AlarmTriggered
from travelalarm.domain.models import Checkpoint

logger = logging.getLogger(__name__)


class AlarmSink(Protocol):
    def start(self, checkpoint: Checkpoint) -> None: ...

    def stop(self) -> None: ...


class LoggingAlarmSink:
    """Reference sink used by the CLI and the API server: it only logs."""

    def __init__(self) -> None:
        self.active: Checkpoint | None = None

    def start(self, checkpoint: Checkpoint) -> None:
        self.active = checkpoint
        logger.warning("ALARM: arrived at %s (%s)", checkpoint.label, checkpoint.id)

    def stop(self) -> None:
        if self.active is not None:
            logger.info("Alarm silenced for %s", self.active.label)
        self.active = None


class AlarmSinkBinding:
    def __init__(self, engine: AlarmEngine, sink: AlarmSink):
        self._sink = sink
        self._lock = threading.Lock()
        self._armed_for: str | None = None
        self._subscriptions = [
            engine.subscribe(AlarmTriggered, self._on_triggered),
            engine.subscribe(AlarmDisarmed, self._on_disarmed),
        ]

    @property
    def armed(self) -> bool:
        return self._armed_for is not None

    def _on_triggered(self, event: AlarmTriggered) -> None:
        with self._lock:
            if self._armed_for is not None:
                return
            self._armed_for = event.checkpoint.id
        self._sink.start(event.checkpoint)

    def _on_disarmed(self, event: AlarmDisarmed) -> None:
        with self._lock:
            if self._armed_for is None:
                return
            self._armed_for = None
        self._sink.stop()

    def close(self) -> None:
        """Detach from the engine; stops the sink if it is still sounding."""
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions = []
        with self._lock:
            was_armed = self._armed_for is not None
            self._armed_for = None
        if was_armed:
            self._sink.stop()


def bind_alarm_sink(engine: AlarmEngine, sink: AlarmSink) -> AlarmSinkBinding:
    return AlarmSinkBinding(engine, sink)
