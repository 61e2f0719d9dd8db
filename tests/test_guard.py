"""Tests for the mutation guard: rejection, warnings, re-validation and locking."""

from __future__ import annotations

import threading
from datetime import date, time

import pytest

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.errors import ConflictError, StaleSnapshotError
from campus_scheduler.domain.events import (
    AllocationPersisted,
    AllocationProposed,
    AllocationRejected,
    AllocationStale,
    AllocationValidated,
)
from campus_scheduler.domain.models import (
    Allocation,
    AllocationKind,
    ConflictReport,
    ConflictType,
    Interval,
)
from campus_scheduler.services.guard import MutationGuard, ResourceLocks, resource_keys

DAY = date(2024, 3, 10)


def _alloc(id: str, **overrides) -> Allocation:
    defaults = dict(
        id=id,
        kind=AllocationKind.EXAM,
        title=f"Exam {id}",
        date=DAY,
        interval=Interval(start=time(9, 0), end=time(11, 0)),
        room="R101",
        faculty_ids={f"F-{id}"},
    )
    defaults.update(overrides)
    return Allocation(**defaults)


class _Store:
    """Minimal allocation store with a snapshot callable for the guard."""

    def __init__(self, allocations: list[Allocation] | None = None) -> None:
        self.allocations = {a.id: a for a in allocations or []}

    def snapshot(self, on_date: date) -> list[Allocation]:
        return [a for a in self.allocations.values() if a.date == on_date]

    def writer(self, allocation: Allocation):
        def write(report: ConflictReport) -> Allocation:
            self.allocations[allocation.id] = allocation
            return allocation

        return write


@pytest.fixture()
def recorded():
    """A bus that records every lifecycle event it sees."""
    bus = EventBus()
    seen: list = []
    for event_type in (
        AllocationProposed,
        AllocationValidated,
        AllocationRejected,
        AllocationStale,
        AllocationPersisted,
    ):
        bus.subscribe(event_type, seen.append)
    return bus, seen


def _commit(guard: MutationGuard, store: _Store, allocation: Allocation):
    return guard.commit(
        allocation.id, AllocationKind.EXAM, [allocation], store.writer(allocation)
    )


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


def test_conflict_free_proposal_is_persisted(recorded):
    bus, seen = recorded
    store = _Store()
    guard = MutationGuard(store.snapshot, bus=bus)

    result = _commit(guard, store, _alloc("A"))

    assert result.id == "A"
    assert "A" in store.allocations
    assert [type(e) for e in seen] == [
        AllocationProposed,
        AllocationValidated,
        AllocationPersisted,
    ]


def test_blocking_conflict_rejects_and_writes_nothing(recorded):
    bus, seen = recorded
    store = _Store([_alloc("A")])
    guard = MutationGuard(store.snapshot, bus=bus)

    with pytest.raises(ConflictError) as excinfo:
        _commit(guard, store, _alloc("B"))

    assert not isinstance(excinfo.value, StaleSnapshotError)
    assert excinfo.value.report.has_blocking_conflict is True
    assert excinfo.value.report.conflicts[0].type == ConflictType.ROOM
    assert "R101" in str(excinfo.value)
    assert "B" not in store.allocations
    assert [type(e) for e in seen] == [AllocationProposed, AllocationRejected]


def test_informational_conflicts_are_passed_to_write():
    store = _Store([_alloc("A", room="R200", student_ids={"S1"})])
    guard = MutationGuard(store.snapshot)
    captured: list[ConflictReport] = []
    proposed = _alloc("B", student_ids={"S1"})

    def write(report: ConflictReport) -> str:
        captured.append(report)
        return "stored"

    assert guard.commit("B", AllocationKind.EXAM, [proposed], write) == "stored"
    assert len(captured) == 1
    assert captured[0].has_blocking_conflict is False
    assert [c.type for c in captured[0].conflicts] == [ConflictType.STUDENT]


def test_edit_excludes_its_own_prior_version():
    store = _Store([_alloc("A")])
    guard = MutationGuard(store.snapshot)

    moved = _alloc("A", interval=Interval(start=time(10, 0), end=time(12, 0)))
    _commit(guard, store, moved)

    assert store.allocations["A"].interval.start == time(10, 0)


def test_stale_snapshot_when_recheck_finds_new_blocking_conflict(recorded):
    bus, seen = recorded
    rival = _alloc("RIVAL")
    calls = {"n": 0}

    def snapshot(on_date: date) -> list[Allocation]:
        # The rival lands between the first check and the commit-time check.
        calls["n"] += 1
        return [] if calls["n"] == 1 else [rival]

    written: list[ConflictReport] = []
    guard = MutationGuard(snapshot, bus=bus)

    with pytest.raises(StaleSnapshotError) as excinfo:
        guard.commit("B", AllocationKind.EXAM, [_alloc("B")], written.append)

    assert written == []
    assert excinfo.value.report.conflicts[0].conflicting_allocation_id == "RIVAL"
    assert [type(e) for e in seen] == [
        AllocationProposed,
        AllocationValidated,
        AllocationStale,
    ]


def test_guard_applies_configured_policy():
    store = _Store([_alloc("A", room="R200", student_ids={"S1"})])
    guard = MutationGuard(store.snapshot, blocking_types={ConflictType.STUDENT})

    with pytest.raises(ConflictError):
        _commit(guard, store, _alloc("B", student_ids={"S1"}))


def test_check_aggregates_across_dates():
    later = date(2024, 3, 17)
    store = _Store([_alloc("A"), _alloc("C", date=later)])
    guard = MutationGuard(store.snapshot)

    report = guard.check([_alloc("B"), _alloc("B", date=later)])

    assert [(c.conflicting_allocation_id, c.date) for c in report.conflicts] == [
        ("A", DAY),
        ("C", later),
    ]


def test_check_of_nothing_is_empty():
    guard = MutationGuard(_Store().snapshot)
    assert guard.check([]) == ConflictReport()


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def test_resource_keys_cover_room_and_faculty_per_date():
    allocation = _alloc("A", building="Main", faculty_ids={"F2", "F1"}, student_ids={"S1"})

    assert resource_keys([allocation]) == [
        ("faculty", "F1", "2024-03-10"),
        ("faculty", "F2", "2024-03-10"),
        ("room", "Main", "R101", "2024-03-10"),
    ]


def test_resource_keys_skip_unassigned_room():
    assert resource_keys([_alloc("A", room=None)]) == [("faculty", "F-A", "2024-03-10")]


def test_resource_locks_for_different_keys_do_not_block_each_other():
    locks = ResourceLocks()
    with locks.hold([("room", "", "R101", "2024-03-10")]):
        # A different resource is still free while the first is held.
        with locks.hold([("room", "", "R102", "2024-03-10")]):
            pass


def test_resource_locks_are_dropped_once_released():
    locks = ResourceLocks()
    key = ("room", "", "R101", "2024-03-10")

    with locks.hold([key, ("faculty", "F1", "2024-03-10")]):
        assert len(locks._locks) == 2
    assert locks._locks == {}
    assert not locks._users

    with pytest.raises(RuntimeError):
        with locks.hold([key]):
            raise RuntimeError("write failed")
    assert locks._locks == {}


def test_resource_lock_survives_while_another_writer_waits():
    locks = ResourceLocks()
    key = ("room", "", "R101", "2024-03-10")
    waiting = threading.Event()
    entered = threading.Event()

    def second_writer() -> None:
        waiting.set()
        with locks.hold([key]):
            entered.set()

    with locks.hold([key]):
        worker = threading.Thread(target=second_writer)
        worker.start()
        waiting.wait(timeout=5)
        assert not entered.wait(timeout=0.1)
    worker.join(timeout=5)

    assert entered.is_set()
    assert locks._locks == {}


def test_commit_leaves_no_locks_behind():
    store = _Store([_alloc("X", room="R999", faculty_ids={"F9"})])
    guard = MutationGuard(store.snapshot)

    _commit(guard, store, _alloc("A"))
    with pytest.raises(ConflictError):
        _commit(guard, store, _alloc("B"))

    assert guard.locks._locks == {}


def test_concurrent_writers_for_the_same_room_admit_only_one():
    """Both writers pass the first check; the lock lets only one of them commit."""
    store = _Store()
    barrier = threading.Barrier(2, timeout=5)
    local = threading.local()

    def snapshot(on_date: date) -> list[Allocation]:
        result = store.snapshot(on_date)
        if not getattr(local, "checked", False):
            local.checked = True
            barrier.wait()
        return result

    guard = MutationGuard(snapshot)
    outcomes: dict[str, str] = {}

    def run(allocation: Allocation) -> None:
        try:
            _commit(guard, store, allocation)
            outcomes[allocation.id] = "persisted"
        except StaleSnapshotError:
            outcomes[allocation.id] = "stale"

    threads = [
        threading.Thread(target=run, args=(_alloc("A"),)),
        threading.Thread(target=run, args=(_alloc("B"),)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(outcomes.values()) == ["persisted", "stale"]
    assert len(store.allocations) == 1
