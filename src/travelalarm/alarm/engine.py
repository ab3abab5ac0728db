"""
Alarm engine facade.

`AlarmEngine` is the one object collaborators talk to (UI, API, CLI, position
adapters). It owns every piece of mutable state (store, snooze timer, state machine,
event bus) so independent instances never share anything; tests simply build a new one.

Every state-changing call is turned into a message and passed through the
`UpdateScheduler`, which is the only writer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from pydantic import ValidationError

from travelalarm.alarm.evaluator import distances
from travelalarm.alarm.events import AlarmEvent, CheckpointAdded, CheckpointRemoved, EventBus, Subscription
from travelalarm.alarm.scheduler import UpdateScheduler
from travelalarm.alarm.snooze import SnoozeTimer, snooze_deadline
from travelalarm.alarm.state_machine import AlarmStateMachine, SnoozeCommand, StopCommand, Transition
from travelalarm.alarm.store import CheckpointStore
from travelalarm.config.settings import Settings
from travelalarm.core.geo import GeoPoint
from travelalarm.core.time import utc_now
from travelalarm.domain.models import (
    AddCheckpointResult,
    AlarmState,
    Checkpoint,
    CheckpointDistance,
    CommandOutcome,
    EngineStatus,
    SampleSource,
)
from travelalarm.errors import DuplicateIdError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddCheckpointCommand:
    checkpoint: Checkpoint


@dataclass(frozen=True)
class RemoveCheckpointCommand:
    checkpoint_id: str


@dataclass(frozen=True)
class _ClearSnoozeCommand:
    pass


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


class AlarmEngine:
    def __init__(
        self,
        checkpoints: Iterable[Checkpoint] = (),
        *,
        clock: Callable[[], datetime] | None = None,
        default_radius_m: float = 500,
        default_snooze_minutes: float = 5,
    ):
        self._clock = clock or utc_now
        self._default_radius_m = float(default_radius_m)
        self._default_snooze_minutes = float(default_snooze_minutes)

        self._store = CheckpointStore(checkpoints)
        self._snooze = SnoozeTimer()
        self._bus = EventBus()
        self._machine = AlarmStateMachine(self._store, self._snooze, clock=self._clock)
        self._scheduler = UpdateScheduler(self._process, clock=self._clock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        checkpoints: Iterable[Checkpoint] = (),
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> "AlarmEngine":
        return cls(
            checkpoints,
            clock=clock,
            default_radius_m=settings.alarm.default_radius_m,
            default_snooze_minutes=settings.alarm.default_snooze_minutes,
        )

    @property
    def scheduler(self) -> UpdateScheduler:
        return self._scheduler

    @property
    def state(self) -> AlarmState:
        return self._machine.state

    @property
    def snoozed_until(self) -> datetime | None:
        """Active snooze deadline, or None. Read-only: does not clear an expired deadline."""
        deadline = self._snooze.deadline
        if deadline is not None and self._clock() < deadline:
            return deadline
        return None

    def status(self) -> EngineStatus:
        return EngineStatus(
            state=self.state,
            snoozed_until=self.snoozed_until,
            checkpoint_count=len(self._store),
        )

    # Checkpoints

    def add_checkpoint(
        self,
        latitude: float,
        longitude: float,
        label: str,
        radius_m: float | None = None,
        *,
        checkpoint_id: str | None = None,
    ) -> AddCheckpointResult:
        """Validate and insert a checkpoint; failures come back as a result, not an exception."""
        try:
            checkpoint = Checkpoint(
                id=checkpoint_id if checkpoint_id is not None else self._store.new_id(),
                latitude=latitude,
                longitude=longitude,
                radius_m=radius_m if radius_m is not None else self._default_radius_m,
                label=label,
            )
        except ValidationError as exc:
            message = _validation_message(exc)
            logger.info("Rejected checkpoint: %s", message)
            return AddCheckpointResult(ok=False, error="INVALID_CHECKPOINT", message=message)
        return self._scheduler.submit(AddCheckpointCommand(checkpoint=checkpoint))

    def remove_checkpoint(self, checkpoint_id: str) -> bool:
        """Remove a checkpoint; removing an unknown id is a no-op returning False.

        Called from inside an event handler, the removal is queued behind the current
        transition and this returns False even though it will still be applied.
        """
        return bool(self._scheduler.submit(RemoveCheckpointCommand(checkpoint_id=checkpoint_id)))

    def list_checkpoints(self) -> list[Checkpoint]:
        return list(self._store.snapshot())

    def get_checkpoint(self, checkpoint_id: str) -> Checkpoint | None:
        return self._store.get(checkpoint_id)

    def distances_from(self, latitude: float, longitude: float) -> list[CheckpointDistance]:
        return distances(GeoPoint(lat=latitude, lon=longitude), self._store.snapshot())

    # Position samples and user commands

    def submit_position(
        self,
        latitude: float,
        longitude: float,
        *,
        timestamp: datetime | None = None,
        source: SampleSource = "foreground",
    ) -> AlarmState:
        """Feed one position sample; returns the alarm state after processing it."""
        try:
            result = self._scheduler.submit_sample(latitude, longitude, timestamp=timestamp, source=source)
        except ValidationError as exc:
            logger.warning("Discarding invalid %s sample: %s", source, _validation_message(exc))
            return self.state
        return result if result is not None else self.state

    def stop(self) -> CommandOutcome:
        return self._command(StopCommand())

    def snooze(self, minutes: float | None = None) -> CommandOutcome:
        """Snooze the sounding alarm for `minutes` (default from settings).

        Raises ValueError for a non-positive, non-finite or out-of-range duration before
        anything is queued.
        """
        minutes = self._default_snooze_minutes if minutes is None else float(minutes)
        snooze_deadline(minutes, self._clock())
        return self._command(SnoozeCommand(minutes=minutes))

    def _command(self, command: object) -> CommandOutcome:
        outcome = self._scheduler.submit(command)
        if outcome is None:
            # Queued from inside an event handler; it runs before the outer submit returns.
            return CommandOutcome(applied=False, deferred=True, state=self.state)
        return outcome

    def clear_snooze(self) -> None:
        self._scheduler.submit(_ClearSnoozeCommand())

    # Events

    def subscribe(self, event_type: type[AlarmEvent], handler: Callable[[AlarmEvent], None]) -> Subscription:
        return self._bus.subscribe(event_type, handler)

    def unsubscribe(self, event_type: type[AlarmEvent], handler: Callable[[AlarmEvent], None]) -> bool:
        return self._bus.unsubscribe(event_type, handler)

    # Serialized processing (runs under the scheduler lock)

    def _process(self, message: object) -> object:
        if isinstance(message, AddCheckpointCommand):
            transition = self._add(message.checkpoint)
        elif isinstance(message, RemoveCheckpointCommand):
            transition = self._remove(message.checkpoint_id)
        elif isinstance(message, _ClearSnoozeCommand):
            self._snooze.clear()
            transition = Transition(None)
        else:
            transition = self._machine.handle(message)

        for event in transition.events:
            self._bus.publish(event)
        return transition.outcome

    def _add(self, checkpoint: Checkpoint) -> Transition:
        try:
            self._store.add(checkpoint)
        except DuplicateIdError as exc:
            logger.info("Rejected checkpoint: %s", exc)
            return Transition(AddCheckpointResult(ok=False, error="DUPLICATE_ID", message=str(exc)))
        logger.info(
            "Added checkpoint %s (%s) at %.5f,%.5f r=%.0fm",
            checkpoint.id,
            checkpoint.label,
            checkpoint.latitude,
            checkpoint.longitude,
            checkpoint.radius_m,
        )
        return Transition(AddCheckpointResult(ok=True, checkpoint=checkpoint), [CheckpointAdded(checkpoint=checkpoint)])

    def _remove(self, checkpoint_id: str) -> Transition:
        if not self._store.remove(checkpoint_id):
            return Transition(False)
        logger.info("Removed checkpoint %s", checkpoint_id)
        return Transition(True, [CheckpointRemoved(checkpoint_id=checkpoint_id)])
