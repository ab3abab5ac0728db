from datetime import datetime, timedelta, timezone

import pytest

from travelalarm.alarm.snooze import MAX_SNOOZE_MINUTES, SnoozeTimer, snooze_deadline

T0 = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


def test_inactive_by_default():
    timer = SnoozeTimer()
    assert timer.deadline is None
    assert timer.is_active(T0) is False


def test_active_until_deadline_then_lazily_cleared():
    timer = SnoozeTimer()
    deadline = timer.snooze(5, T0)
    assert deadline == T0 + timedelta(minutes=5)

    assert timer.is_active(T0 + timedelta(minutes=4, seconds=59))
    # `now < deadline` is strict: the deadline itself is already expired.
    assert timer.is_active(deadline) is False
    assert timer.deadline is None


def test_snooze_overwrites_instead_of_stacking():
    timer = SnoozeTimer()
    timer.snooze(10, T0)
    timer.snooze(2, T0 + timedelta(minutes=1))
    assert timer.deadline == T0 + timedelta(minutes=3)


def test_clear():
    timer = SnoozeTimer()
    timer.snooze(5, T0)
    timer.clear()
    assert timer.is_active(T0) is False


@pytest.mark.parametrize("minutes", [0, -1])
def test_non_positive_minutes_rejected(minutes):
    timer = SnoozeTimer()
    with pytest.raises(ValueError):
        timer.snooze(minutes, T0)
    assert timer.deadline is None


@pytest.mark.parametrize("minutes", [float("inf"), float("nan"), 1e10, MAX_SNOOZE_MINUTES + 1])
def test_unbounded_minutes_rejected_without_touching_deadline(minutes):
    timer = SnoozeTimer()
    timer.snooze(5, T0)
    with pytest.raises(ValueError):
        timer.snooze(minutes, T0)
    assert timer.deadline == T0 + timedelta(minutes=5)


def test_deadline_past_datetime_max_rejected():
    near_end = datetime.max.replace(tzinfo=timezone.utc) - timedelta(minutes=1)
    with pytest.raises(ValueError):
        snooze_deadline(10, near_end)
