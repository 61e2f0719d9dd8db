"""Per-date lookup structures over the existing allocation pool."""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Iterable

from campus_scheduler.domain.models import Allocation


class ResourceIndex:
    """Existing allocations on one date, keyed by room, faculty member and student.

    Built fresh for every detection call; allocation data is owned elsewhere
    and may change between calls.
    """

    def __init__(self, on_date: dt.date) -> None:
        self.on_date = on_date
        self.by_room: dict[tuple[str, str], list[Allocation]] = defaultdict(list)
        self.by_faculty: dict[str, list[Allocation]] = defaultdict(list)
        self.by_student: dict[str, list[Allocation]] = defaultdict(list)

    @classmethod
    def build(
        cls,
        existing: Iterable[Allocation],
        on_date: dt.date,
        exclude_id: str | None = None,
    ) -> ResourceIndex:
        """Index the active allocations of *existing* that fall on *on_date*.

        ``exclude_id`` drops the allocation being edited so it is never
        compared against its own prior version.
        """
        index = cls(on_date)
        for allocation in existing:
            if allocation.date != on_date or not allocation.is_active:
                continue
            if exclude_id is not None and allocation.id == exclude_id:
                continue
            index.add(allocation)
        return index

    def add(self, allocation: Allocation) -> None:
        room_key = allocation.room_key
        if room_key is not None:
            self.by_room[room_key].append(allocation)
        for faculty_id in allocation.faculty_ids:
            self.by_faculty[faculty_id].append(allocation)
        for student_id in allocation.student_ids:
            self.by_student[student_id].append(allocation)

    def in_room(self, room_key: tuple[str, str] | None) -> list[Allocation]:
        if room_key is None:
            return []
        return self.by_room.get(room_key, [])

    def for_faculty(self, faculty_id: str) -> list[Allocation]:
        return self.by_faculty.get(faculty_id, [])

    def for_student(self, student_id: str) -> list[Allocation]:
        return self.by_student.get(student_id, [])

    def __len__(self) -> int:
        seen = set()
        for bucket in (self.by_room, self.by_faculty, self.by_student):
            for allocations in bucket.values():
                seen.update(a.id for a in allocations)
        return len(seen)
