"""In-memory repositories for exams, timetable entries and lifecycle timelines."""

from __future__ import annotations

import datetime as dt

from campus_scheduler.domain.models import Exam, TimelineEntry, TimetableEntry


class ExamRepository:
    """Dict-backed store for Exam instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Exam] = {}

    def add(self, exam: Exam) -> None:
        self._store[exam.id] = exam

    def get(self, exam_id: str) -> Exam | None:
        return self._store.get(exam_id)

    def list_all(self) -> list[Exam]:
        return list(self._store.values())

    def list_on(self, on_date: dt.date) -> list[Exam]:
        return [e for e in self._store.values() if e.scheduled_date == on_date]


class TimetableRepository:
    """Dict-backed store for weekly TimetableEntry instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, TimetableEntry] = {}

    def add(self, entry: TimetableEntry) -> None:
        self._store[entry.id] = entry

    def get(self, entry_id: str) -> TimetableEntry | None:
        return self._store.get(entry_id)

    def list_all(self) -> list[TimetableEntry]:
        return list(self._store.values())

    def list_for_day(self, day_of_week: str) -> list[TimetableEntry]:
        return [e for e in self._store.values() if e.day_of_week == day_of_week]


class TimelineRepository:
    """List-backed store for TimelineEntry instances."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []

    def add(self, entry: TimelineEntry) -> None:
        self._entries.append(entry)

    def list_for_allocation(self, allocation_id: str) -> list[TimelineEntry]:
        return sorted(
            [e for e in self._entries if e.allocation_id == allocation_id],
            key=lambda e: e.timestamp,
        )
