"""
Trigger evaluation.

Pure functions over a store snapshot: they never mutate anything, the state machine
decides what a hit means.
"""

from __future__ import annotations

from typing import Sequence

from travelalarm.core.geo import GeoPoint, haversine_m
from travelalarm.domain.models import Checkpoint, CheckpointDistance


def evaluate(position: GeoPoint, snapshot: Sequence[Checkpoint]) -> Checkpoint | None:
    """Return the earliest-created checkpoint whose circle contains `position`."""
    for cp in snapshot:
        if haversine_m(position, cp.location) <= cp.radius_m:
            return cp
    return None


def distances(position: GeoPoint, snapshot: Sequence[Checkpoint]) -> list[CheckpointDistance]:
    """Distance from `position` to every checkpoint, in snapshot (creation) order."""
    out: list[CheckpointDistance] = []
    for cp in snapshot:
        d = haversine_m(position, cp.location)
        out.append(CheckpointDistance(checkpoint=cp, distance_m=d, inside=d <= cp.radius_m))
    return out
