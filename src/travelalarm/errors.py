"""
Error taxonomy.

Only input errors are modeled as exceptions; the engine converts them into structured
results at its boundary (see `travelalarm.domain.models.AddCheckpointResult`), so
callers never receive an exception with partial state applied.
"""

from __future__ import annotations


class TravelAlarmError(Exception):
    """Base class for engine errors."""

    code = "TRAVELALARM_ERROR"


class DuplicateIdError(TravelAlarmError):
    """A checkpoint with the same id is already in the store."""

    code = "DUPLICATE_ID"

    def __init__(self, checkpoint_id: str):
        super().__init__(f"Checkpoint id '{checkpoint_id}' already exists")
        self.checkpoint_id = checkpoint_id


class InvalidCheckpointError(TravelAlarmError):
    """Latitude, longitude, radius or label failed validation."""

    code = "INVALID_CHECKPOINT"
