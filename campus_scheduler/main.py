"""FastAPI application: exam and timetable services with conflict checking."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from campus_scheduler.config import configure_logging, load_settings
from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.errors import (
    ConflictError,
    StaleSnapshotError,
    ValidationError,
)
from campus_scheduler.domain.handlers import HandlerRegistry
from campus_scheduler.domain.models import (
    ConflictReport,
    Exam,
    ExamRequest,
    TimelineEntry,
    TimetableEntry,
    TimetableEntryRequest,
)
from campus_scheduler.repos.memory import (
    ExamRepository,
    TimelineRepository,
    TimetableRepository,
)
from campus_scheduler.services.allocations import AllocationSource
from campus_scheduler.services.exams import ExamNotFound, ExamService
from campus_scheduler.services.guard import MutationGuard, ResourceLocks
from campus_scheduler.services.timetable import (
    TimetableEntryNotFound,
    TimetableService,
)

logger = logging.getLogger(__name__)

settings = load_settings()
configure_logging(settings)
logger.info(
    "blocking conflict types: %s",
    ", ".join(sorted(str(t) for t in settings.blocking_types)) or "none",
)

app = FastAPI(title="Campus Scheduling Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
exam_repo = ExamRepository()
timetable_repo = TimetableRepository()
timeline_repo = TimelineRepository()

handler_registry = HandlerRegistry(bus=event_bus, timeline_repo=timeline_repo)

guard = MutationGuard(
    snapshot=AllocationSource(exam_repo, timetable_repo, settings.horizon_weeks),
    locks=ResourceLocks(),
    bus=event_bus,
    blocking_types=settings.blocking_types,
)
exam_service = ExamService(exam_repo, guard)
timetable_service = TimetableService(timetable_repo, guard, settings.horizon_weeks)


def _raise_for(exc: Exception) -> None:
    """Translate a domain error into the matching HTTP error."""
    if isinstance(exc, StaleSnapshotError):
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Schedule changed while saving, please retry",
                "retry": True,
                "report": exc.report.model_dump(mode="json"),
            },
        ) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "retry": False,
                "report": exc.report.model_dump(mode="json"),
            },
        ) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    raise exc


# ── Exams ─────────────────────────────────────────────────────────────


@app.post("/exams/check-conflicts", response_model=ConflictReport)
def check_exam_conflicts(
    payload: ExamRequest, exam_id: str | None = None
) -> ConflictReport:
    """Dry-run conflict check for a new exam, or for an edit when *exam_id* is given."""
    try:
        return exam_service.check(payload, exam_id)
    except ValidationError as exc:
        _raise_for(exc)


@app.post("/exams", response_model=Exam)
def create_exam(payload: ExamRequest) -> Exam:
    try:
        return exam_service.create(payload)
    except (ConflictError, ValidationError) as exc:
        _raise_for(exc)


@app.put("/exams/{exam_id}", response_model=Exam)
def update_exam(exam_id: str, payload: ExamRequest) -> Exam:
    try:
        return exam_service.update(exam_id, payload)
    except ExamNotFound:
        raise HTTPException(status_code=404, detail="Exam not found")
    except (ConflictError, ValidationError) as exc:
        _raise_for(exc)


@app.get("/exams", response_model=list[Exam])
def list_exams() -> list[Exam]:
    return exam_service.list_exams()


@app.get("/exams/{exam_id}", response_model=Exam)
def get_exam(exam_id: str) -> Exam:
    """Return a single exam, including the conflict warnings stored with it."""
    try:
        return exam_service.get(exam_id)
    except ExamNotFound:
        raise HTTPException(status_code=404, detail="Exam not found")


# ── Timetable ─────────────────────────────────────────────────────────


@app.post("/timetable/check-conflicts", response_model=ConflictReport)
def check_timetable_conflicts(
    payload: TimetableEntryRequest, entry_id: str | None = None
) -> ConflictReport:
    """Check every occurrence of a weekly entry within its validation horizon."""
    try:
        return timetable_service.check(payload, entry_id)
    except ValidationError as exc:
        _raise_for(exc)


@app.post("/timetable", response_model=TimetableEntry)
def create_timetable_entry(payload: TimetableEntryRequest) -> TimetableEntry:
    try:
        return timetable_service.create(payload)
    except (ConflictError, ValidationError) as exc:
        _raise_for(exc)


@app.put("/timetable/{entry_id}", response_model=TimetableEntry)
def update_timetable_entry(
    entry_id: str, payload: TimetableEntryRequest
) -> TimetableEntry:
    try:
        return timetable_service.update(entry_id, payload)
    except TimetableEntryNotFound:
        raise HTTPException(status_code=404, detail="Timetable entry not found")
    except (ConflictError, ValidationError) as exc:
        _raise_for(exc)


@app.get("/timetable", response_model=list[TimetableEntry])
def list_timetable_entries() -> list[TimetableEntry]:
    return timetable_service.list_entries()


@app.get("/timetable/{entry_id}", response_model=TimetableEntry)
def get_timetable_entry(entry_id: str) -> TimetableEntry:
    try:
        return timetable_service.get(entry_id)
    except TimetableEntryNotFound:
        raise HTTPException(status_code=404, detail="Timetable entry not found")


# ── Lifecycle ─────────────────────────────────────────────────────────


@app.get("/allocations/{allocation_id}/timeline", response_model=list[TimelineEntry])
def get_timeline(allocation_id: str) -> list[TimelineEntry]:
    """Return the PROPOSED/VALIDATED/PERSISTED/REJECTED history of an allocation."""
    entries = timeline_repo.list_for_allocation(allocation_id)
    if not entries:
        raise HTTPException(status_code=404, detail="No timeline for allocation")
    return entries
