"""Classify why a proposed allocation collides with existing ones."""

from __future__ import annotations

from campus_scheduler.domain.models import Allocation, Conflict, ConflictType
from campus_scheduler.services.index import ResourceIndex
from campus_scheduler.services.intervals import allocations_overlap, intersection

_TYPE_ORDER = {ConflictType.ROOM: 0, ConflictType.FACULTY: 1, ConflictType.STUDENT: 2}


def conflict_sort_key(conflict: Conflict) -> tuple:
    """ROOM before FACULTY before STUDENT, then conflicting id, then date."""
    return (
        _TYPE_ORDER[conflict.type],
        conflict.conflicting_allocation_id,
        conflict.date,
    )


def classify(proposed: Allocation, index: ResourceIndex) -> list[Conflict]:
    """Return every conflict between *proposed* and the indexed allocations.

    One conflict per ``(conflicting allocation, type)``; shared faculty and
    student ids are gathered into ``resource_ids`` rather than producing a
    conflict each.
    """
    conflicts = _room_conflicts(proposed, index)
    conflicts.extend(_faculty_conflicts(proposed, index))
    conflicts.extend(_student_conflicts(proposed, index))
    conflicts.sort(key=conflict_sort_key)
    return conflicts


def _clashes(proposed: Allocation, candidate: Allocation) -> bool:
    return candidate.id != proposed.id and allocations_overlap(candidate, proposed)


def _room_conflicts(proposed: Allocation, index: ResourceIndex) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for candidate in index.in_room(proposed.room_key):
        if not _clashes(proposed, candidate):
            continue
        conflicts.append(
            Conflict(
                type=ConflictType.ROOM,
                conflicting_allocation_id=candidate.id,
                conflicting_allocation_title=candidate.title,
                message=(
                    f"Room {proposed.room_label} is already booked for "
                    f"{candidate.title} at this time ({candidate.interval})"
                ),
                date=proposed.date,
                interval=intersection(proposed.interval, candidate.interval),
                resource_ids=[proposed.room_label],
            )
        )
    return conflicts


def _faculty_conflicts(proposed: Allocation, index: ResourceIndex) -> list[Conflict]:
    shared: dict[str, set[str]] = {}
    candidates: dict[str, Allocation] = {}
    for faculty_id in sorted(proposed.faculty_ids):
        for candidate in index.for_faculty(faculty_id):
            if not _clashes(proposed, candidate):
                continue
            candidates[candidate.id] = candidate
            shared.setdefault(candidate.id, set()).add(faculty_id)

    conflicts: list[Conflict] = []
    for candidate_id, faculty_ids in shared.items():
        candidate = candidates[candidate_id]
        names = ", ".join(sorted(faculty_ids))
        conflicts.append(
            Conflict(
                type=ConflictType.FACULTY,
                conflicting_allocation_id=candidate_id,
                conflicting_allocation_title=candidate.title,
                message=(
                    f"Faculty {names} already assigned to {candidate.title} "
                    f"at this time ({candidate.interval})"
                ),
                date=proposed.date,
                interval=intersection(proposed.interval, candidate.interval),
                resource_ids=sorted(faculty_ids),
            )
        )
    return conflicts


def _student_conflicts(proposed: Allocation, index: ResourceIndex) -> list[Conflict]:
    shared: dict[str, set[str]] = {}
    candidates: dict[str, Allocation] = {}
    # Large cohorts share many candidates; each one is checked for overlap once.
    verdicts: dict[str, bool] = {}
    for student_id in proposed.student_ids:
        for candidate in index.for_student(student_id):
            if candidate.id not in verdicts:
                verdicts[candidate.id] = _clashes(proposed, candidate)
            if not verdicts[candidate.id]:
                continue
            candidates[candidate.id] = candidate
            shared.setdefault(candidate.id, set()).add(student_id)

    conflicts: list[Conflict] = []
    for candidate_id, student_ids in shared.items():
        candidate = candidates[candidate_id]
        conflicts.append(
            Conflict(
                type=ConflictType.STUDENT,
                conflicting_allocation_id=candidate_id,
                conflicting_allocation_title=candidate.title,
                message=(
                    f"{len(student_ids)} student(s) are enrolled in both "
                    f"{proposed.title or proposed.id} and {candidate.title} at this time"
                ),
                date=proposed.date,
                interval=intersection(proposed.interval, candidate.interval),
                resource_ids=sorted(student_ids),
            )
        )
    return conflicts
