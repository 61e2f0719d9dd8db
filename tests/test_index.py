"""Tests for the per-date resource index."""

from __future__ import annotations

from datetime import date, time

from campus_scheduler.domain.models import (
    Allocation,
    AllocationKind,
    AllocationStatus,
    Interval,
)
from campus_scheduler.services.index import ResourceIndex

DAY = date(2024, 3, 10)


def _alloc(id: str, **overrides) -> Allocation:
    defaults = dict(
        id=id,
        kind=AllocationKind.EXAM,
        title=id,
        date=DAY,
        interval=Interval(start=time(9, 0), end=time(11, 0)),
        room="R101",
        building="Main",
        faculty_ids={"F1"},
        student_ids={"S1", "S2"},
    )
    defaults.update(overrides)
    return Allocation(**defaults)


def test_index_keys_by_room_faculty_and_student():
    a = _alloc("A")
    b = _alloc("B", room="R102", faculty_ids={"F1", "F2"}, student_ids={"S2"})
    index = ResourceIndex.build([a, b], DAY)

    assert index.in_room(("Main", "R101")) == [a]
    assert index.in_room(("Main", "R102")) == [b]
    assert index.for_faculty("F1") == [a, b]
    assert index.for_faculty("F2") == [b]
    assert index.for_student("S1") == [a]
    assert index.for_student("S2") == [a, b]
    assert len(index) == 2


def test_index_restricted_to_date():
    a = _alloc("A")
    other_day = _alloc("B", date=date(2024, 3, 11))
    index = ResourceIndex.build([a, other_day], DAY)

    assert index.for_faculty("F1") == [a]
    assert len(index) == 1


def test_unassigned_room_left_out_of_room_index():
    a = _alloc("A", room=None, building=None)
    index = ResourceIndex.build([a], DAY)

    assert dict(index.by_room) == {}
    assert index.in_room(None) == []
    assert index.for_faculty("F1") == [a]


def test_same_room_name_in_different_buildings_is_a_different_key():
    a = _alloc("A", building="North")
    index = ResourceIndex.build([a], DAY)

    assert index.in_room(("North", "R101")) == [a]
    assert index.in_room(("Main", "R101")) == []


def test_exclude_id_and_inactive_statuses():
    editing = _alloc("A")
    cancelled = _alloc("B", status=AllocationStatus.CANCELLED)
    completed = _alloc("C", status=AllocationStatus.COMPLETED)
    draft = _alloc("D", status=AllocationStatus.DRAFT)
    index = ResourceIndex.build(
        [editing, cancelled, completed, draft], DAY, exclude_id="A"
    )

    assert index.for_faculty("F1") == [draft]


def test_unknown_keys_return_empty():
    index = ResourceIndex.build([], DAY)
    assert index.in_room(("Main", "R999")) == []
    assert index.for_faculty("nobody") == []
    assert index.for_student("nobody") == []
    assert len(index) == 0
