"""
Checkpoint persistence.

The engine holds no on-disk state. This module is the optional collaborator that keeps
the checkpoint list in a local JSON file (default: `data/checkpoints.json`) across
restarts. Alarm state (triggered/snoozed) is never persisted: position tracking restarts
with the process, so the engine always starts Idle.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.alarm.events import CheckpointAdded, CheckpointRemoved
from travelalarm.core.env import resolve_project_path
from travelalarm.domain.models import Checkpoint

logger = logging.getLogger(__name__)

_CHECKPOINTS_ADAPTER = TypeAdapter(list[Checkpoint])


def load_checkpoints(path: str | Path) -> list[Checkpoint]:
    """Load and validate a checkpoints JSON file; a missing file means no checkpoints."""
    resolved = resolve_project_path(path)
    if not resolved.exists():
        return []
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    return _CHECKPOINTS_ADAPTER.validate_python(payload)


def save_checkpoints(path: str | Path, checkpoints: Iterable[Checkpoint]) -> Path:
    """Write checkpoints via a temporary file + atomic replace."""
    resolved = resolve_project_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    payload = [cp.model_dump(mode="json") for cp in checkpoints]
    tmp = resolved.with_suffix(".tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(resolved)
    return resolved


class CheckpointAutosave:
    """Saves the engine's checkpoint list whenever one is added or removed."""

    def __init__(self, engine: AlarmEngine, path: str | Path):
        self._engine = engine
        self._path = path
        self._subscriptions = [
            engine.subscribe(CheckpointAdded, self._save),
            engine.subscribe(CheckpointRemoved, self._save),
        ]

    def _save(self, _event: object) -> None:
        try:
            saved = save_checkpoints(self._path, self._engine.list_checkpoints())
        except OSError as exc:
            logger.warning("Could not save checkpoints to %s: %s", self._path, str(exc))
            return
        logger.debug("Saved checkpoints to %s", saved)

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions = []
