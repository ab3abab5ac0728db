import threading

import pytest

from travelalarm.alarm.store import CheckpointStore
from travelalarm.domain.models import Checkpoint
from travelalarm.errors import DuplicateIdError


def _cp(cp_id: str, lat: float = 28.70, lon: float = 77.10) -> Checkpoint:
    return Checkpoint(id=cp_id, latitude=lat, longitude=lon, radius_m=500, label=f"cp {cp_id}")


def test_add_and_snapshot_preserve_creation_order():
    store = CheckpointStore()
    for cp_id in ["c", "a", "b"]:
        store.add(_cp(cp_id))
    assert [cp.id for cp in store.snapshot()] == ["c", "a", "b"]
    assert len(store) == 3
    assert store.contains("a")
    assert "b" in store


def test_add_duplicate_raises_and_leaves_store_unchanged():
    store = CheckpointStore([_cp("A")])
    before = store.snapshot()
    with pytest.raises(DuplicateIdError) as excinfo:
        store.add(_cp("A", lat=10.0, lon=10.0))
    assert excinfo.value.checkpoint_id == "A"
    assert store.snapshot() == before


def test_remove_is_idempotent():
    store = CheckpointStore([_cp("A")])
    assert store.remove("A") is True
    assert store.remove("A") is False
    assert store.remove("never-existed") is False
    assert not store.contains("A")


def test_snapshot_is_an_immutable_copy():
    store = CheckpointStore([_cp("A")])
    snap = store.snapshot()
    store.add(_cp("B"))
    store.remove("A")
    assert [cp.id for cp in snap] == ["A"]
    assert isinstance(snap, tuple)


def test_new_ids_are_unique_and_creation_ordered():
    store = CheckpointStore()
    ids = [store.new_id() for _ in range(50)]
    assert len(set(ids)) == 50
    assert ids == sorted(ids)


def test_concurrent_adds_and_snapshots_do_not_lose_entries():
    store = CheckpointStore()
    errors: list[Exception] = []

    def writer(prefix: str) -> None:
        for i in range(200):
            store.add(_cp(f"{prefix}-{i}"))

    def reader() -> None:
        try:
            for _ in range(200):
                ids = [cp.id for cp in store.snapshot()]
                assert len(ids) == len(set(ids))
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("x", "y")]
    threads.append(threading.Thread(target=reader))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(store) == 400


def test_new_ids_continue_after_loaded_generated_ids():
    store = CheckpointStore([_cp("cp-0007-deadbeef"), _cp("Home"), _cp("cp-0003-cafebabe")])
    assert store.new_id().startswith("cp-0008-")


def test_new_id_numbering_keeps_growing_past_padding():
    store = CheckpointStore([_cp("cp-9999-deadbeef")])
    assert store.new_id().startswith("cp-10000-")
