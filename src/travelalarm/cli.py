"""
TravelAlarm CLI entrypoint.

This CLI is intended for local setup and debugging without a phone:
- manage the checkpoints file the API server loads at startup
- compute distances between coordinates (decimal or DMS)
- replay a recorded track (CSV) through a fresh engine and print the alarm events
"""

from __future__ import annotations

import argparse
import csv
import json
import math
from pathlib import Path
from typing import Any

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.alarm.events import AlarmEvent, AlarmTriggered
from travelalarm.alarm.snooze import MAX_SNOOZE_MINUTES
from travelalarm.config.settings import get_settings
from travelalarm.core.coords import coordinate_arg
from travelalarm.core.env import resolve_project_path
from travelalarm.core.geo import distance_m
from travelalarm.core.logging import configure_logging
from travelalarm.core.time import ManualClock, parse_datetime
from travelalarm.storage.checkpoints import load_checkpoints, save_checkpoints


def _checkpoints_path(args: argparse.Namespace) -> Path:
    return resolve_project_path(args.checkpoints or get_settings().storage.checkpoints_path)


def _load_engine(args: argparse.Namespace, **kwargs: Any) -> AlarmEngine:
    return AlarmEngine.from_settings(get_settings(), load_checkpoints(_checkpoints_path(args)), **kwargs)


def _cmd_list(args: argparse.Namespace) -> int:
    engine = _load_engine(args)
    if args.near:
        lat, lon = args.near
        for d in engine.distances_from(lat, lon):
            cp = d.checkpoint
            flag = " (inside)" if d.inside else ""
            print(f"{cp.id}  {cp.label}  r={cp.radius_m:.0f}m  {d.distance_m / 1000:.2f} km left{flag}")
        return 0
    for cp in engine.list_checkpoints():
        print(f"{cp.id}  {cp.label}  {cp.latitude:.6f},{cp.longitude:.6f}  r={cp.radius_m:.0f}m")
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    engine = _load_engine(args)
    result = engine.add_checkpoint(args.lat, args.lon, args.label, args.radius_m, checkpoint_id=args.id)
    if not result.ok or result.checkpoint is None:
        print(f"error: {result.error}: {result.message}")
        return 1
    path = save_checkpoints(_checkpoints_path(args), engine.list_checkpoints())
    print(f"added {result.checkpoint.id} ({result.checkpoint.label}) -> {path}")
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    engine = _load_engine(args)
    if not engine.remove_checkpoint(args.id):
        print(f"{args.id}: not found (nothing to remove)")
        return 0
    save_checkpoints(_checkpoints_path(args), engine.list_checkpoints())
    print(f"removed {args.id}")
    return 0


def _snooze_minutes_arg(value: str) -> float:
    try:
        minutes = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if not math.isfinite(minutes) or not 0 < minutes <= MAX_SNOOZE_MINUTES:
        raise argparse.ArgumentTypeError(f"must be > 0 and <= {MAX_SNOOZE_MINUTES} minutes: {value!r}")
    return minutes


def _cmd_distance(args: argparse.Namespace) -> int:
    d = distance_m(args.from_lat, args.from_lon, args.to_lat, args.to_lon)
    print(f"{d:.1f} m")
    return 0


def read_track(path: str | Path, tz_name: str = "UTC") -> list[dict[str, Any]]:
    """Read a CSV track with `lat`/`lon` (or `latitude`/`longitude`) and `timestamp` columns."""
    rows: list[dict[str, Any]] = []
    with Path(path).open("r", encoding="utf-8", newline="") as f:
        for i, row in enumerate(csv.DictReader(f), start=1):
            lat = row.get("lat") or row.get("latitude")
            lon = row.get("lon") or row.get("longitude")
            ts = row.get("timestamp")
            if not lat or not lon or not ts:
                raise ValueError(f"{path}: row {i} needs lat, lon and timestamp")
            rows.append({"lat": float(lat), "lon": float(lon), "timestamp": parse_datetime(ts, tz_name)})
    return rows


def replay_track(
    engine: AlarmEngine,
    clock: ManualClock,
    track: list[dict[str, Any]],
    *,
    on_trigger: str = "ignore",
    snooze_minutes: float | None = None,
) -> list[dict[str, Any]]:
    """Feed `track` through `engine`, answering each trigger with `on_trigger`."""
    log: list[dict[str, Any]] = []
    current: dict[str, Any] = {}

    def record(event: AlarmEvent) -> None:
        log.append({"at": current["timestamp"].isoformat(), **event.as_dict()})

    def respond(_event: AlarmTriggered) -> None:
        # Submitted from inside a handler: the scheduler runs it right after this transition.
        if on_trigger == "stop":
            engine.stop()
        elif on_trigger == "snooze":
            engine.snooze(snooze_minutes)

    engine.subscribe(AlarmEvent, record)
    engine.subscribe(AlarmTriggered, respond)
    for point in track:
        current["timestamp"] = point["timestamp"]
        clock.set(point["timestamp"])
        engine.submit_position(point["lat"], point["lon"], timestamp=point["timestamp"], source="replay")
    return log


def _cmd_replay(args: argparse.Namespace) -> int:
    settings = get_settings()
    track = read_track(args.track, settings.app.timezone)
    if not track:
        print("empty track")
        return 0
    clock = ManualClock(track[0]["timestamp"])
    engine = _load_engine(args, clock=clock)
    log = replay_track(engine, clock, track, on_trigger=args.on_trigger, snooze_minutes=args.snooze_minutes)

    if args.json:
        print(json.dumps(log, ensure_ascii=False, indent=2))
        return 0

    for entry in log:
        detail = entry.get("checkpoint", {}).get("label") or entry.get("checkpoint_id") or ""
        reason = f" ({entry['reason']})" if "reason" in entry else ""
        print(f"{entry['at']}  {entry['event']}  {detail}{reason}")
    print(f"final state: {engine.state.kind}; checkpoints left: {len(engine.list_checkpoints())}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the TravelAlarm CLI."""
    parser = argparse.ArgumentParser(prog="travelalarm")
    parser.add_argument(
        "--checkpoints",
        type=str,
        default=None,
        help="Checkpoints JSON file (default: storage.checkpoints_path from settings).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    cps = sub.add_parser("checkpoints", help="Manage the checkpoints file.")
    cps_sub = cps.add_subparsers(dest="checkpoints_command", required=True)

    ls = cps_sub.add_parser("list", help="List checkpoints in creation order.")
    ls.add_argument(
        "--near",
        nargs=2,
        type=coordinate_arg,
        metavar=("LAT", "LON"),
        default=None,
        help="Also show the distance left from this position.",
    )
    ls.set_defaults(func=_cmd_list)

    add = cps_sub.add_parser("add", help="Add a checkpoint.")
    add.add_argument("--lat", required=True, type=coordinate_arg, help='Decimal or DMS, e.g. 28° 36\' 50" N')
    add.add_argument("--lon", required=True, type=coordinate_arg)
    add.add_argument("--label", required=True)
    add.add_argument("--radius-m", dest="radius_m", type=float, default=None)
    add.add_argument("--id", type=str, default=None, help="Explicit id (default: generated).")
    add.set_defaults(func=_cmd_add)

    rm = cps_sub.add_parser("remove", help="Remove a checkpoint (no-op if absent).")
    rm.add_argument("id")
    rm.set_defaults(func=_cmd_remove)

    dist = sub.add_parser("distance", help="Great-circle distance between two coordinates.")
    dist.add_argument("from_lat", type=coordinate_arg)
    dist.add_argument("from_lon", type=coordinate_arg)
    dist.add_argument("to_lat", type=coordinate_arg)
    dist.add_argument("to_lon", type=coordinate_arg)
    dist.set_defaults(func=_cmd_distance)

    rep = sub.add_parser("replay", help="Replay a CSV track (lat,lon,timestamp) through the engine.")
    rep.add_argument("track")
    rep.add_argument("--on-trigger", choices=["stop", "snooze", "ignore"], default="stop")
    rep.add_argument("--snooze-minutes", type=_snooze_minutes_arg, default=None)
    rep.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rep.set_defaults(func=_cmd_replay)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m travelalarm.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
