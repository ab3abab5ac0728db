"""
Alarm events and the event bus.

Events describe *what happened*; `AlarmState` describes *what is currently true*.
They are immutable so they can be handed to any number of subscribers (UI, alarm
sink, persistence) without copying.

Delivery model:
- synchronous, on the thread that performed the transition
- in subscription order
- the subscriber list is copied before delivery, so unsubscribing (even from inside
  a handler) only affects later emissions
- a failing handler is logged and skipped; the transition it observed stays applied
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Literal, TypeVar

from travelalarm.domain.models import Checkpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlarmEvent:
    name: ClassVar[str] = "alarm_event"

    def as_dict(self) -> dict[str, Any]:
        return {"event": self.name}


@dataclass(frozen=True)
class AlarmTriggered(AlarmEvent):
    name: ClassVar[str] = "alarm_triggered"

    checkpoint: Checkpoint

    def as_dict(self) -> dict[str, Any]:
        return {"event": self.name, "checkpoint": self.checkpoint.model_dump(mode="json")}


@dataclass(frozen=True)
class AlarmDisarmed(AlarmEvent):
    name: ClassVar[str] = "alarm_disarmed"

    checkpoint_id: str
    reason: Literal["stop", "snooze"]

    def as_dict(self) -> dict[str, Any]:
        return {"event": self.name, "checkpoint_id": self.checkpoint_id, "reason": self.reason}


@dataclass(frozen=True)
class CheckpointAdded(AlarmEvent):
    name: ClassVar[str] = "checkpoint_added"

    checkpoint: Checkpoint

    def as_dict(self) -> dict[str, Any]:
        return {"event": self.name, "checkpoint": self.checkpoint.model_dump(mode="json")}


@dataclass(frozen=True)
class CheckpointRemoved(AlarmEvent):
    name: ClassVar[str] = "checkpoint_removed"

    checkpoint_id: str

    def as_dict(self) -> dict[str, Any]:
        return {"event": self.name, "checkpoint_id": self.checkpoint_id}


E = TypeVar("E", bound=AlarmEvent)
Handler = Callable[[Any], None]


class Subscription:
    """Handle returned by `EventBus.subscribe`; call it (or `.cancel()`) to unsubscribe."""

    def __init__(self, bus: "EventBus", event_type: type[AlarmEvent], handler: Handler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler

    def cancel(self) -> bool:
        return self._bus.unsubscribe(self.event_type, self.handler)

    def __call__(self) -> bool:
        return self.cancel()


class EventBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[tuple[type[AlarmEvent], Handler]] = []

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Subscription:
        """Register `handler` for `event_type` (and its subclasses; `AlarmEvent` = all)."""
        with self._lock:
            self._subscribers.append((event_type, handler))
        return Subscription(self, event_type, handler)

    def unsubscribe(self, event_type: type[AlarmEvent], handler: Handler) -> bool:
        """Remove the first matching registration; False if it was not registered."""
        with self._lock:
            for i, (et, h) in enumerate(self._subscribers):
                if et is event_type and h == handler:
                    del self._subscribers[i]
                    return True
        return False

    def publish(self, event: AlarmEvent) -> int:
        """Deliver `event` to matching handlers; returns the number of handlers invoked."""
        with self._lock:
            targets = [h for et, h in self._subscribers if isinstance(event, et)]
        delivered = 0
        for handler in targets:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event.name)
            delivered += 1
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
