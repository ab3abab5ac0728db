"""
Alarm state machine.

States: Idle -> Triggered{checkpoint_id} -> Idle, via Stop (checkpoint consumed) or
Snooze (checkpoint kept, every trigger suppressed until the deadline).

| From      | Message        | Guard                       | To        |
|-----------|----------------|-----------------------------|-----------|
| Idle      | PositionSample | snooze inactive, hit c      | Triggered |
| Idle      | PositionSample | snooze active or no hit     | Idle      |
| Triggered | PositionSample |                             | Triggered |
| Triggered | StopCommand    |                             | Idle      |
| Triggered | SnoozeCommand  |                             | Idle      |
| Idle      | Stop/Snooze    |                             | Idle      |

Stop and Snooze are deliberately separate handlers: Stop removes the checkpoint from
the store for good, Snooze never touches the store.

The machine is not thread-safe on its own. `UpdateScheduler` is its single caller and
holds one lock for the whole read-evaluate-write sequence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from travelalarm.alarm.evaluator import evaluate
from travelalarm.alarm.events import AlarmDisarmed, AlarmEvent, AlarmTriggered, CheckpointRemoved
from travelalarm.alarm.snooze import SnoozeTimer
from travelalarm.alarm.store import CheckpointStore
from travelalarm.domain.models import (
    IDLE,
    AlarmState,
    CommandOutcome,
    PositionSample,
    Snoozed,
    Triggered,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopCommand:
    pass


@dataclass(frozen=True)
class SnoozeCommand:
    minutes: float


@dataclass
class Transition:
    """What a handled message produced: a caller-facing outcome plus events to publish."""

    outcome: Any
    events: list[AlarmEvent] = field(default_factory=list)


class AlarmStateMachine:
    def __init__(
        self,
        store: CheckpointStore,
        snooze_timer: SnoozeTimer,
        *,
        clock: Callable[[], datetime],
    ):
        self._store = store
        self._snooze = snooze_timer
        self._clock = clock
        self._state: AlarmState = IDLE

    @property
    def state(self) -> AlarmState:
        return self._state

    def handle(self, message: object) -> Transition:
        if isinstance(message, PositionSample):
            return self._on_sample(message)
        if isinstance(message, StopCommand):
            return self._on_stop()
        if isinstance(message, SnoozeCommand):
            return self._on_snooze(message.minutes)
        raise TypeError(f"Unsupported alarm message: {type(message).__name__}")

    def _on_sample(self, sample: PositionSample) -> Transition:
        if self._snooze.is_active(self._clock()):
            logger.debug("Sample from %s suppressed by snooze.", sample.source)
            return Transition(self._state)

        if isinstance(self._state, Triggered):
            return Transition(self._state)

        hit = evaluate(sample.location, self._store.snapshot())
        if hit is None:
            return Transition(self._state)

        self._state = Triggered(checkpoint_id=hit.id)
        logger.info(
            "Checkpoint %s (%s) triggered by %s sample at %.5f,%.5f",
            hit.id,
            hit.label,
            sample.source,
            sample.latitude,
            sample.longitude,
        )
        return Transition(self._state, [AlarmTriggered(checkpoint=hit)])

    def _on_stop(self) -> Transition:
        if not isinstance(self._state, Triggered):
            logger.debug("Stop ignored; no alarm is sounding.")
            return Transition(CommandOutcome(applied=False, state=self._state))

        checkpoint_id = self._state.checkpoint_id
        events: list[AlarmEvent] = []
        if self._store.remove(checkpoint_id):
            events.append(CheckpointRemoved(checkpoint_id=checkpoint_id))
        else:
            logger.info("Triggered checkpoint %s was already removed.", checkpoint_id)
        events.append(AlarmDisarmed(checkpoint_id=checkpoint_id, reason="stop"))
        self._state = IDLE
        logger.info("Alarm stopped; checkpoint %s consumed.", checkpoint_id)
        return Transition(CommandOutcome(applied=True, state=self._state), events)

    def _on_snooze(self, minutes: float) -> Transition:
        if not isinstance(self._state, Triggered):
            logger.debug("Snooze ignored; no alarm is sounding.")
            return Transition(CommandOutcome(applied=False, state=self._state))

        checkpoint_id = self._state.checkpoint_id
        until = self._snooze.snooze(minutes, self._clock())
        # Snoozed is only reported back to the caller; the machine itself rests in Idle.
        self._state = IDLE
        logger.info("Alarm for %s snoozed until %s.", checkpoint_id, until.isoformat())
        return Transition(
            CommandOutcome(applied=True, state=Snoozed(until=until)),
            [AlarmDisarmed(checkpoint_id=checkpoint_id, reason="snooze")],
        )
