"""
Domain models (Pydantic).

These types are the contract between the engine and its collaborators:
- checkpoints registered by the UI (`Checkpoint`)
- position samples from the foreground poller and the background task (`PositionSample`)
- the alarm state reported back to the UI (`Idle`, `Triggered`, `Snoozed`)
- structured results for boundary calls (`AddCheckpointResult`, `CommandOutcome`)

Keeping these models in one place gives one validation point (reject bad input before
it reaches the store) and consistent JSON output across CLI/API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from travelalarm.core.geo import GeoPoint

SampleSource = Literal["foreground", "background", "api", "replay"]


class Checkpoint(BaseModel):
    """A circular geofence that fires the alarm when entered. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    radius_m: float = Field(..., gt=0, allow_inf_nan=False)
    label: str = Field(..., min_length=1)

    @field_validator("label")
    @classmethod
    def _strip_label(cls, label: str) -> str:
        label = label.strip()
        if not label:
            raise ValueError("label must not be blank")
        return label

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=self.latitude, lon=self.longitude)


class PositionSample(BaseModel):
    """One resolved device position."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    timestamp: datetime
    source: SampleSource = "foreground"

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=self.latitude, lon=self.longitude)


class Idle(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["idle"] = "idle"


class Triggered(BaseModel):
    """The alarm is sounding for `checkpoint_id` (which may since have been removed)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["triggered"] = "triggered"
    checkpoint_id: str


class Snoozed(BaseModel):
    """Alarm silenced until `until`; reported as the outcome of a snooze command."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["snoozed"] = "snoozed"
    until: datetime


AlarmState = Union[Idle, Triggered, Snoozed]

IDLE = Idle()


class CheckpointDistance(BaseModel):
    """Distance from a position to a checkpoint center (for "x km left" displays)."""

    checkpoint: Checkpoint
    distance_m: float
    inside: bool


class AddCheckpointResult(BaseModel):
    ok: bool
    checkpoint: Checkpoint | None = None
    error: Literal["DUPLICATE_ID", "INVALID_CHECKPOINT"] | None = None
    message: str = ""


class CommandOutcome(BaseModel):
    """Result of a Stop/Snooze command.

    `applied=False` means the command was a no-op, unless `deferred` is set: a command
    issued from inside an event handler is queued and applied right after the current
    transition, so its outcome is not known yet.
    """

    applied: bool
    deferred: bool = False
    state: AlarmState = Field(..., discriminator="kind")


class EngineStatus(BaseModel):
    state: AlarmState = Field(..., discriminator="kind")
    snoozed_until: datetime | None = None
    checkpoint_count: int = Field(..., ge=0)
