"""Timetable management: weekly entries checked across every dated occurrence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError as ModelValidationError

from campus_scheduler.domain.errors import ValidationError
from campus_scheduler.domain.models import (
    Allocation,
    AllocationKind,
    ConflictReport,
    TimetableEntry,
    TimetableEntryRequest,
)
from campus_scheduler.repos.memory import TimetableRepository
from campus_scheduler.services.allocations import expand_entry
from campus_scheduler.services.guard import MutationGuard

logger = logging.getLogger(__name__)


class TimetableEntryNotFound(LookupError):
    pass


class TimetableService:
    def __init__(
        self, repo: TimetableRepository, guard: MutationGuard, horizon_weeks: int
    ) -> None:
        self.repo = repo
        self.guard = guard
        self.horizon_weeks = horizon_weeks

    def get(self, entry_id: str) -> TimetableEntry:
        entry = self.repo.get(entry_id)
        if entry is None:
            raise TimetableEntryNotFound(entry_id)
        return entry

    def list_entries(self) -> list[TimetableEntry]:
        """Entries in week order, then by start time."""
        return sorted(
            self.repo.list_all(),
            key=lambda e: (e.day_of_week.weekday, e.start_time, e.id),
        )

    def expand(self, entry: TimetableEntry) -> list[Allocation]:
        return expand_entry(entry, self.horizon_weeks)

    def check(
        self, request: TimetableEntryRequest, entry_id: str | None = None
    ) -> ConflictReport:
        entry = self._build(request, entry_id)
        return self.guard.check(self.expand(entry))

    def create(self, request: TimetableEntryRequest) -> TimetableEntry:
        return self._commit(self._build(request))

    def update(self, entry_id: str, request: TimetableEntryRequest) -> TimetableEntry:
        current = self.get(entry_id)
        entry = self._build(request, entry_id).model_copy(
            update={
                "created_at": current.created_at,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        return self._commit(entry)

    def _build(
        self, request: TimetableEntryRequest, entry_id: str | None = None
    ) -> TimetableEntry:
        fields = request.model_dump()
        if entry_id is not None:
            fields["id"] = entry_id
        try:
            return TimetableEntry(**fields)
        except ModelValidationError as exc:
            raise ValidationError(f"Invalid timetable entry: {exc}") from exc

    def _commit(self, entry: TimetableEntry) -> TimetableEntry:
        occurrences = self.expand(entry)
        if not occurrences:
            logger.warning(
                "timetable entry %s has no occurrence between %s and its horizon",
                entry.id,
                entry.term_start,
            )

        def write(report: ConflictReport) -> TimetableEntry:
            stored = entry.model_copy(update={"conflict_warnings": report.conflicts})
            self.repo.add(stored)
            return stored

        return self.guard.commit(entry.id, AllocationKind.CLASS, occurrences, write)
