"""
Coordinate string parsing.

Users type checkpoint coordinates either as decimal degrees (`28.6139`) or copy them
from a map app in degrees/minutes/seconds (`28° 36' 50" N`). Both forms are accepted
by the CLI; the engine itself only ever sees floats.
"""

from __future__ import annotations

import re

_DMS_RE = re.compile(
    r"(\d+(?:\.\d+)?)[°\s]+(\d+(?:\.\d+)?)[′'\s]+(\d+(?:\.\d+)?)[″\"\s]*([NSEW])",
    re.IGNORECASE,
)


def parse_coordinate(value: str | None) -> float | None:
    """Parse a decimal or DMS coordinate; returns None when unparseable.

    South and West hemispheres produce negative values. Range checks are left to
    `Checkpoint` validation so the error message names the offending field.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    try:
        return float(text)
    except ValueError:
        pass

    match = _DMS_RE.search(text)
    if not match:
        return None

    degrees, minutes, seconds = (float(match.group(i)) for i in (1, 2, 3))
    result = degrees + minutes / 60 + seconds / 3600
    if match.group(4).upper() in {"S", "W"}:
        result = -result
    return result


def coordinate_arg(value: str) -> float:
    """argparse `type=` adapter around `parse_coordinate`."""
    parsed = parse_coordinate(value)
    if parsed is None:
        raise ValueError(f"Invalid coordinate '{value}'")
    return parsed
