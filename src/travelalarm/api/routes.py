"""
API routes.

Endpoints:
- GET    `/api/checkpoints`: list checkpoints (optionally with distances from `lat`/`lon`).
- POST   `/api/checkpoints`: add a checkpoint (409 duplicate id, 422 invalid values).
- DELETE `/api/checkpoints/{checkpoint_id}`: remove a checkpoint (idempotent).
- POST   `/api/positions`: submit a position sample.
- GET    `/api/alarm`: current alarm status.
- POST   `/api/alarm/stop` / `/api/alarm/snooze`: user commands.
- GET    `/api/events`: recent engine events (for UI polling).
- GET    `/api/settings`: public settings for the UI.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.alarm.events import AlarmEvent
from travelalarm.alarm.sink import AlarmSinkBinding, LoggingAlarmSink, bind_alarm_sink
from travelalarm.alarm.snooze import MAX_SNOOZE_MINUTES
from travelalarm.config.settings import Settings, get_settings
from travelalarm.core.time import utc_now
from travelalarm.domain.models import Checkpoint, CommandOutcome, EngineStatus
from travelalarm.errors import TravelAlarmError
from travelalarm.storage.checkpoints import CheckpointAutosave, load_checkpoints

logger = logging.getLogger(__name__)

router = APIRouter()


class CheckpointIn(BaseModel):
    id: str | None = None
    latitude: float
    longitude: float
    radius_m: float | None = None
    label: str


class PositionIn(BaseModel):
    latitude: float
    longitude: float
    timestamp: datetime | None = None
    source: Literal["foreground", "background", "api"] = "api"


class SnoozeIn(BaseModel):
    minutes: float | None = Field(default=None, gt=0, le=MAX_SNOOZE_MINUTES, allow_inf_nan=False)


class EventLog:
    """Bounded in-memory log of engine events."""

    def __init__(self, maxlen: int = 200):
        self._items: deque[dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def record(self, event: AlarmEvent) -> None:
        with self._lock:
            self._items.append({"at": utc_now().isoformat(), **event.as_dict()})

    def items(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._items)


@dataclass
class ApiRuntime:
    """Everything the API process keeps alive for the engine's lifetime."""

    engine: AlarmEngine
    events: EventLog
    sink: AlarmSinkBinding | None = None
    autosave: CheckpointAutosave | None = None


def _engine_from_file(settings: Settings, persist: bool) -> tuple[AlarmEngine, bool]:
    if not persist:
        return AlarmEngine.from_settings(settings), False
    path = settings.storage.checkpoints_path
    try:
        return AlarmEngine.from_settings(settings, load_checkpoints(path)), True
    except (OSError, ValueError, TravelAlarmError) as exc:
        # Leave the file as it is for the user to fix; autosave would overwrite it.
        logger.error("Ignoring unreadable checkpoints file %s (autosave disabled): %s", path, str(exc))
        return AlarmEngine.from_settings(settings), False


def build_runtime(settings: Settings, engine: AlarmEngine | None = None, *, persist: bool = True) -> ApiRuntime:
    if engine is None:
        engine, persist = _engine_from_file(settings, persist)
    events = EventLog(maxlen=settings.api.event_log_size)
    engine.subscribe(AlarmEvent, events.record)
    autosave = None
    if persist and settings.storage.autosave:
        autosave = CheckpointAutosave(engine, settings.storage.checkpoints_path)
    return ApiRuntime(
        engine=engine,
        events=events,
        sink=bind_alarm_sink(engine, LoggingAlarmSink()),
        autosave=autosave,
    )


@lru_cache
def _runtime() -> ApiRuntime:
    return build_runtime(get_settings())


@router.get("/api/checkpoints")
def list_checkpoints(lat: float | None = None, lon: float | None = None) -> dict:
    engine = _runtime().engine
    if lat is None or lon is None:
        return {"checkpoints": [cp.model_dump(mode="json") for cp in engine.list_checkpoints()]}
    return {
        "checkpoints": [
            {**d.checkpoint.model_dump(mode="json"), "distance_m": round(d.distance_m, 1), "inside": d.inside}
            for d in engine.distances_from(lat, lon)
        ]
    }


@router.post("/api/checkpoints", response_model=Checkpoint, status_code=201)
def add_checkpoint(body: CheckpointIn) -> Checkpoint:
    result = _runtime().engine.add_checkpoint(
        body.latitude,
        body.longitude,
        body.label,
        body.radius_m,
        checkpoint_id=body.id,
    )
    if result.ok and result.checkpoint is not None:
        return result.checkpoint
    status = 409 if result.error == "DUPLICATE_ID" else 422
    raise HTTPException(status_code=status, detail={"code": result.error, "message": result.message})


@router.delete("/api/checkpoints/{checkpoint_id}")
def delete_checkpoint(checkpoint_id: str) -> dict:
    removed = _runtime().engine.remove_checkpoint(checkpoint_id)
    return {"checkpoint_id": checkpoint_id, "removed": removed}


@router.post("/api/positions", response_model=EngineStatus)
def submit_position(body: PositionIn) -> EngineStatus:
    engine = _runtime().engine
    engine.submit_position(body.latitude, body.longitude, timestamp=body.timestamp, source=body.source)
    return engine.status()


@router.get("/api/alarm", response_model=EngineStatus)
def get_alarm() -> EngineStatus:
    return _runtime().engine.status()


@router.post("/api/alarm/stop", response_model=CommandOutcome)
def stop_alarm() -> CommandOutcome:
    return _runtime().engine.stop()


@router.post("/api/alarm/snooze", response_model=CommandOutcome)
def snooze_alarm(body: SnoozeIn | None = None) -> CommandOutcome:
    minutes = body.minutes if body is not None else None
    try:
        return _runtime().engine.snooze(minutes)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail={"code": "INVALID_SNOOZE", "message": str(exc)}) from exc


@router.get("/api/events")
def get_events() -> dict:
    return {"events": _runtime().events.items()}


@router.get("/api/settings")
def get_public_settings() -> dict:
    settings = get_settings()
    return {
        "app": settings.app.model_dump(mode="json"),
        "alarm": settings.alarm.model_dump(mode="json"),
        "tracking": settings.tracking.model_dump(mode="json"),
    }
