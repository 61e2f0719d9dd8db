"""Domain models for exam and timetable conflict checking."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator


class AllocationKind(StrEnum):
    EXAM = "exam"
    CLASS = "class"


class AllocationStatus(StrEnum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Only these take part in conflict checks; finished or cancelled
# allocations no longer hold their room or people.
ACTIVE_STATUSES = frozenset(
    {AllocationStatus.DRAFT, AllocationStatus.SCHEDULED, AllocationStatus.IN_PROGRESS}
)


class ConflictType(StrEnum):
    ROOM = "room"
    FACULTY = "faculty"
    STUDENT = "student"


class ConflictSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class ExamType(StrEnum):
    MIDTERM = "midterm"
    FINAL = "final"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    PROJECT = "project"


class DayOfWeek(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday == 0)."""
        return list(DayOfWeek).index(self)

    @classmethod
    def of(cls, day: dt.date) -> DayOfWeek:
        return list(cls)[day.weekday()]


class TimelineEntryType(StrEnum):
    PROPOSED = "proposed"
    VALIDATED = "validated"
    PERSISTED = "persisted"
    REJECTED = "rejected"
    STALE = "stale"
    CONFLICT_DETECTED = "conflict_detected"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _local_time(value: dt.time) -> dt.time:
    """Times of day are campus-local wall-clock times and carry no offset."""
    if value.tzinfo is not None:
        raise ValueError("time must not carry a timezone offset")
    return value


# ---------------------------------------------------------------------------
# Conflict engine models
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """Half-open time-of-day range ``[start, end)``."""

    start: dt.time
    end: dt.time

    _naive = field_validator("start", "end")(_local_time)

    @model_validator(mode="after")
    def _end_after_start(self) -> Interval:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


class Allocation(BaseModel):
    """A single dated, timed claim on a room and/or people."""

    id: str = Field(default_factory=_new_id)
    kind: AllocationKind
    title: str = ""
    date: dt.date
    interval: Interval
    room: str | None = None
    building: str | None = None
    faculty_ids: set[str] = Field(min_length=1)
    student_ids: set[str] = Field(default_factory=set)
    status: AllocationStatus = AllocationStatus.SCHEDULED

    @property
    def room_key(self) -> tuple[str, str] | None:
        """``(building, room)`` or ``None`` when no room is assigned."""
        if not self.room:
            return None
        return (self.building or "", self.room)

    @property
    def room_label(self) -> str | None:
        if not self.room:
            return None
        return f"{self.building} {self.room}" if self.building else self.room

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class Conflict(BaseModel):
    type: ConflictType
    conflicting_allocation_id: str
    conflicting_allocation_title: str
    message: str
    date: dt.date
    interval: Interval
    resource_ids: list[str] = Field(default_factory=list)
    severity: ConflictSeverity = ConflictSeverity.WARNING


class ConflictReport(BaseModel):
    conflicts: list[Conflict] = Field(default_factory=list)
    has_blocking_conflict: bool = False


# ---------------------------------------------------------------------------
# Stored records owned by the exam and timetable services
# ---------------------------------------------------------------------------


class Exam(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    course_code: str
    course_name: str | None = None
    exam_type: ExamType = ExamType.FINAL
    status: AllocationStatus = AllocationStatus.SCHEDULED
    scheduled_date: dt.date
    start_time: dt.time
    end_time: dt.time
    room: str | None = None
    building: str | None = None
    faculty_ids: set[str] = Field(min_length=1)
    student_ids: set[str] = Field(default_factory=set)
    instructions: str | None = None
    conflict_warnings: list[Conflict] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    _naive = field_validator("start_time", "end_time")(_local_time)

    @model_validator(mode="after")
    def _end_after_start(self) -> Exam:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimetableEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    course_code: str
    course_name: str | None = None
    faculty_ids: set[str] = Field(min_length=1)
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time
    room: str | None = None
    building: str | None = None
    campus_id: str | None = None
    semester: str | None = None
    academic_year: str | None = None
    student_ids: set[str] = Field(default_factory=set)
    term_start: dt.date
    term_end: dt.date | None = None
    status: AllocationStatus = AllocationStatus.SCHEDULED
    conflict_warnings: list[Conflict] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    _naive = field_validator("start_time", "end_time")(_local_time)

    @model_validator(mode="after")
    def _well_formed(self) -> TimetableEntry:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.term_end is not None and self.term_end < self.term_start:
            raise ValueError("term_end must not be before term_start")
        return self


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    allocation_id: str
    timestamp: dt.datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ExamRequest(BaseModel):
    title: str
    course_code: str
    course_name: str | None = None
    exam_type: ExamType = ExamType.FINAL
    status: AllocationStatus = AllocationStatus.SCHEDULED
    scheduled_date: dt.date
    start_time: dt.time
    end_time: dt.time
    room: str | None = None
    building: str | None = None
    faculty_ids: set[str] = Field(min_length=1)
    student_ids: set[str] = Field(default_factory=set)
    instructions: str | None = None

    _naive = field_validator("start_time", "end_time")(_local_time)

    @model_validator(mode="after")
    def _end_after_start(self) -> ExamRequest:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimetableEntryRequest(BaseModel):
    course_code: str
    course_name: str | None = None
    faculty_ids: set[str] = Field(min_length=1)
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time
    room: str | None = None
    building: str | None = None
    campus_id: str | None = None
    semester: str | None = None
    academic_year: str | None = None
    student_ids: set[str] = Field(default_factory=set)
    term_start: dt.date
    term_end: dt.date | None = None
    status: AllocationStatus = AllocationStatus.SCHEDULED

    _naive = field_validator("start_time", "end_time")(_local_time)

    @model_validator(mode="after")
    def _well_formed(self) -> TimetableEntryRequest:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.term_end is not None and self.term_end < self.term_start:
            raise ValueError("term_end must not be before term_start")
        return self
