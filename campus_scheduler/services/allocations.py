"""Normalise stored exams and timetable entries into ``Allocation`` values.

This is the only place stored records are turned into the engine's
single date/interval representation.
"""

from __future__ import annotations

import datetime as dt

from campus_scheduler.domain.models import (
    Allocation,
    AllocationKind,
    DayOfWeek,
    Exam,
    Interval,
    TimetableEntry,
)
from campus_scheduler.repos.memory import ExamRepository, TimetableRepository
from campus_scheduler.services.recurrence import entry_dates, occurs_on


def exam_allocation(exam: Exam) -> Allocation:
    return Allocation(
        id=exam.id,
        kind=AllocationKind.EXAM,
        title=exam.title,
        date=exam.scheduled_date,
        interval=Interval(start=exam.start_time, end=exam.end_time),
        room=exam.room,
        building=exam.building,
        faculty_ids=set(exam.faculty_ids),
        student_ids=set(exam.student_ids),
        status=exam.status,
    )


def class_allocation(entry: TimetableEntry, on_date: dt.date) -> Allocation:
    """One concrete occurrence of a weekly entry.

    Every occurrence keeps the entry's id, so an edit excludes all of its
    own occurrences.
    """
    title = entry.course_code
    if entry.course_name:
        title = f"{entry.course_code} {entry.course_name}"
    return Allocation(
        id=entry.id,
        kind=AllocationKind.CLASS,
        title=title,
        date=on_date,
        interval=Interval(start=entry.start_time, end=entry.end_time),
        room=entry.room,
        building=entry.building,
        faculty_ids=set(entry.faculty_ids),
        student_ids=set(entry.student_ids),
        status=entry.status,
    )


def expand_entry(entry: TimetableEntry, horizon_weeks: int) -> list[Allocation]:
    """One allocation per date the entry occurs on within its validation horizon."""
    return [class_allocation(entry, day) for day in entry_dates(entry, horizon_weeks)]


class AllocationSource:
    """Latest snapshot of existing allocations on a date, across exams and classes."""

    def __init__(
        self,
        exam_repo: ExamRepository,
        timetable_repo: TimetableRepository,
        horizon_weeks: int,
    ) -> None:
        self.exam_repo = exam_repo
        self.timetable_repo = timetable_repo
        self.horizon_weeks = horizon_weeks

    def __call__(self, on_date: dt.date) -> list[Allocation]:
        allocations = [exam_allocation(e) for e in self.exam_repo.list_on(on_date)]
        for entry in self.timetable_repo.list_for_day(DayOfWeek.of(on_date)):
            if occurs_on(entry, on_date, self.horizon_weeks):
                allocations.append(class_allocation(entry, on_date))
        return allocations
