"""Error taxonomy for scheduling validation and mutation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campus_scheduler.domain.models import ConflictReport


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling engine."""


class ValidationError(SchedulingError):
    """Malformed input: a bad interval or duplicate ids in the existing set.

    Always a caller bug; never retried. Building a model directly raises
    pydantic's own ``ValidationError``; the exam and timetable services
    convert that into this one.
    """


class ConflictError(SchedulingError):
    """A well-formed proposal collides with a blocking resource."""

    def __init__(self, report: ConflictReport, message: str | None = None) -> None:
        self.report = report
        super().__init__(message or _summarise(report))


class StaleSnapshotError(ConflictError):
    """Commit-time re-validation found a blocking conflict the first check missed.

    A concurrent writer won the race; the caller may retry with fresh data.
    """


def _summarise(report: ConflictReport) -> str:
    blocking = [c for c in report.conflicts if c.severity == "error"]
    if not blocking:
        return "Scheduling conflict detected"
    return "; ".join(c.message for c in blocking)
