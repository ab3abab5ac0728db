import math
import threading
from datetime import datetime, timezone

import pytest

from travelalarm.alarm.engine import AlarmEngine
from travelalarm.alarm.events import (
    AlarmDisarmed,
    AlarmEvent,
    AlarmTriggered,
    CheckpointAdded,
    CheckpointRemoved,
)
from travelalarm.config.settings import get_settings
from travelalarm.core.geo import EARTH_RADIUS_M
from travelalarm.core.time import ManualClock
from travelalarm.domain.models import Idle, Snoozed, Triggered

HOME_LAT = 28.70
HOME_LON = 77.10


def _north(meters: float) -> tuple[float, float]:
    return HOME_LAT + math.degrees(meters / EARTH_RADIUS_M), HOME_LON


def _engine_with_home():
    clock = ManualClock(datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc))
    engine = AlarmEngine(clock=clock)
    events: list[AlarmEvent] = []
    engine.subscribe(AlarmEvent, events.append)
    result = engine.add_checkpoint(HOME_LAT, HOME_LON, "Home", 500, checkpoint_id="A")
    assert result.ok
    events.clear()
    return engine, clock, events


def test_home_scenario_stop_consumes_checkpoint():
    engine, _, events = _engine_with_home()

    engine.submit_position(*_north(1000))
    assert events == []
    assert isinstance(engine.state, Idle)

    state = engine.submit_position(*_north(200))
    assert state == Triggered(checkpoint_id="A")
    assert [type(e) for e in events] == [AlarmTriggered]
    assert events[0].checkpoint.id == "A"

    outcome = engine.stop()
    assert outcome.applied is True
    assert isinstance(outcome.state, Idle)
    assert events[1:] == [CheckpointRemoved(checkpoint_id="A"), AlarmDisarmed(checkpoint_id="A", reason="stop")]
    assert isinstance(engine.state, Idle)
    assert [cp.id for cp in engine.list_checkpoints()] == []

    # Same spot again: the checkpoint is gone for good.
    engine.submit_position(*_north(200))
    engine.submit_position(HOME_LAT, HOME_LON)
    assert len(events) == 3
    assert "A" not in [cp.id for cp in engine.list_checkpoints()]


def test_home_scenario_snooze_retains_checkpoint_and_retriggers_after_deadline():
    engine, clock, events = _engine_with_home()

    engine.submit_position(*_north(200))
    outcome = engine.snooze(5)
    assert outcome.applied is True
    assert isinstance(outcome.state, Snoozed)
    assert events[-1] == AlarmDisarmed(checkpoint_id="A", reason="snooze")
    assert isinstance(engine.state, Idle)
    assert [cp.id for cp in engine.list_checkpoints()] == ["A"]
    assert engine.snoozed_until == outcome.state.until

    engine.submit_position(*_north(200))
    clock.advance(minutes=4, seconds=59)
    engine.submit_position(*_north(200))
    assert [type(e) for e in events] == [AlarmTriggered, AlarmDisarmed]

    clock.advance(seconds=1)
    assert engine.submit_position(*_north(200)) == Triggered(checkpoint_id="A")
    assert [type(e) for e in events] == [AlarmTriggered, AlarmDisarmed, AlarmTriggered]
    assert engine.snoozed_until is None


def test_snooze_suppresses_every_checkpoint_not_just_the_triggered_one():
    engine, clock, events = _engine_with_home()
    engine.add_checkpoint(19.0760, 72.8777, "Office", 500, checkpoint_id="B")
    events.clear()

    engine.submit_position(*_north(100))
    engine.snooze(10)
    engine.submit_position(19.0760, 72.8777)
    assert [type(e) for e in events] == [AlarmTriggered, AlarmDisarmed]

    clock.advance(minutes=10)
    engine.submit_position(19.0760, 72.8777)
    assert events[-1] == AlarmTriggered(checkpoint=engine.get_checkpoint("B"))


def test_samples_while_triggered_do_not_retrigger():
    engine, _, events = _engine_with_home()
    engine.add_checkpoint(HOME_LAT, HOME_LON, "Overlapping", 2000, checkpoint_id="B")
    events.clear()

    engine.submit_position(*_north(100))
    engine.submit_position(*_north(100))
    engine.submit_position(*_north(1500))
    assert [type(e) for e in events] == [AlarmTriggered]
    assert engine.state == Triggered(checkpoint_id="A")


def test_stop_and_snooze_while_idle_are_no_ops():
    engine, _, events = _engine_with_home()
    stop = engine.stop()
    snooze = engine.snooze(5)
    assert stop.applied is False and isinstance(stop.state, Idle)
    assert snooze.applied is False and isinstance(snooze.state, Idle)
    assert engine.snoozed_until is None
    assert events == []
    assert [cp.id for cp in engine.list_checkpoints()] == ["A"]


def test_stop_after_racing_remove_still_disarms():
    engine, _, events = _engine_with_home()
    engine.submit_position(*_north(100))

    assert engine.remove_checkpoint("A") is True
    assert engine.state == Triggered(checkpoint_id="A")

    outcome = engine.stop()
    assert outcome.applied is True
    assert [type(e) for e in events] == [AlarmTriggered, CheckpointRemoved, AlarmDisarmed]
    assert isinstance(engine.state, Idle)


def test_add_duplicate_id_reports_error_and_leaves_store_unchanged():
    engine, _, events = _engine_with_home()
    before = engine.list_checkpoints()

    result = engine.add_checkpoint(10.0, 10.0, "Elsewhere", 100, checkpoint_id="A")

    assert result.ok is False
    assert result.error == "DUPLICATE_ID"
    assert engine.list_checkpoints() == before
    assert events == []


@pytest.mark.parametrize(
    "lat,lon,label,radius",
    [
        (91.0, 0.0, "x", 100),
        (0.0, -180.5, "x", 100),
        (0.0, 0.0, "x", 0),
        (0.0, 0.0, "x", -5),
        (0.0, 0.0, "   ", 100),
        (float("nan"), 0.0, "x", 100),
    ],
)
def test_invalid_checkpoint_rejected_without_state_change(lat, lon, label, radius):
    engine, _, events = _engine_with_home()
    result = engine.add_checkpoint(lat, lon, label, radius)
    assert result.ok is False
    assert result.error == "INVALID_CHECKPOINT"
    assert result.message
    assert len(engine.list_checkpoints()) == 1
    assert events == []


def test_add_without_id_generates_one_and_uses_default_radius():
    engine = AlarmEngine(default_radius_m=750)
    events: list[AlarmEvent] = []
    engine.subscribe(CheckpointAdded, events.append)

    result = engine.add_checkpoint(1.0, 2.0, "  Station  ")

    assert result.ok
    cp = result.checkpoint
    assert cp.id.startswith("cp-")
    assert cp.radius_m == 750
    assert cp.label == "Station"
    assert events == [CheckpointAdded(checkpoint=cp)]


def test_remove_checkpoint_is_idempotent_and_emits_once():
    engine, _, events = _engine_with_home()
    assert engine.remove_checkpoint("A") is True
    assert engine.remove_checkpoint("A") is False
    assert events == [CheckpointRemoved(checkpoint_id="A")]


def test_invalid_sample_is_discarded():
    engine, _, events = _engine_with_home()
    assert isinstance(engine.submit_position(120.0, 0.0), Idle)
    assert events == []


def test_from_settings_uses_configured_defaults():
    settings = get_settings()
    engine = AlarmEngine.from_settings(settings)
    cp = engine.add_checkpoint(0.0, 0.0, "Default radius").checkpoint
    assert cp.radius_m == settings.alarm.default_radius_m


def test_default_snooze_minutes_and_invalid_minutes():
    clock = ManualClock(datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc))
    engine = AlarmEngine(clock=clock, default_snooze_minutes=7)
    engine.add_checkpoint(0.0, 0.0, "Zero", 100, checkpoint_id="Z")
    engine.submit_position(0.0, 0.0)

    with pytest.raises(ValueError):
        engine.snooze(0)
    assert engine.state == Triggered(checkpoint_id="Z")

    outcome = engine.snooze()
    assert (outcome.state.until - clock()).total_seconds() == 7 * 60


def test_clear_snooze_reenables_triggers():
    engine, _, events = _engine_with_home()
    engine.submit_position(*_north(100))
    engine.snooze(30)
    engine.clear_snooze()
    assert engine.snoozed_until is None
    engine.submit_position(*_north(100))
    assert [type(e) for e in events] == [AlarmTriggered, AlarmDisarmed, AlarmTriggered]


def test_status_snapshot():
    engine, _, _ = _engine_with_home()
    engine.submit_position(*_north(100))
    status = engine.status()
    assert status.state == Triggered(checkpoint_id="A")
    assert status.checkpoint_count == 1
    assert status.snoozed_until is None


def test_concurrent_triggering_samples_fire_exactly_once():
    engine, _, events = _engine_with_home()
    lat, lon = _north(200)
    barrier = threading.Barrier(2)

    def producer(source: str) -> None:
        barrier.wait()
        for _ in range(50):
            engine.submit_position(lat, lon, source=source)

    threads = [
        threading.Thread(target=producer, args=("foreground",)),
        threading.Thread(target=producer, args=("background",)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert [type(e) for e in events] == [AlarmTriggered]
    assert engine.state == Triggered(checkpoint_id="A")
    assert engine.scheduler.processed >= 101


def test_handler_may_issue_commands_without_deadlock():
    engine, _, events = _engine_with_home()
    engine.subscribe(AlarmTriggered, lambda e: engine.stop())

    engine.submit_position(*_north(100))

    assert [type(e) for e in events] == [AlarmTriggered, CheckpointRemoved, AlarmDisarmed]
    assert isinstance(engine.state, Idle)
    assert engine.list_checkpoints() == []


def test_engines_are_independent():
    first, _, first_events = _engine_with_home()
    second = AlarmEngine()
    second.submit_position(HOME_LAT, HOME_LON)
    assert second.list_checkpoints() == []
    assert first_events == []


@pytest.mark.parametrize("minutes", [1e10, float("inf"), float("nan")])
def test_out_of_range_snooze_raises_value_error_and_keeps_alarm_sounding(minutes):
    engine, _, events = _engine_with_home()
    engine.submit_position(*_north(100))

    with pytest.raises(ValueError):
        engine.snooze(minutes)

    assert engine.state == Triggered(checkpoint_id="A")
    assert engine.snoozed_until is None
    assert [type(e) for e in events] == [AlarmTriggered]


def test_out_of_range_snooze_from_handler_does_not_reach_sample_submitter():
    engine, _, events = _engine_with_home()
    engine.subscribe(AlarmTriggered, lambda e: engine.snooze(1e10))

    state = engine.submit_position(*_north(100))

    assert state == Triggered(checkpoint_id="A")
    assert [type(e) for e in events] == [AlarmTriggered]


def test_commands_from_handler_report_deferred_then_apply():
    engine, _, events = _engine_with_home()
    outcomes = []
    engine.subscribe(AlarmTriggered, lambda e: outcomes.append(engine.snooze(10)))

    engine.submit_position(*_north(100))

    assert len(outcomes) == 1
    assert outcomes[0].deferred is True
    assert outcomes[0].applied is False
    assert [type(e) for e in events] == [AlarmTriggered, AlarmDisarmed]
    assert engine.snoozed_until is not None

    direct = engine.stop()
    assert direct.deferred is False
