"""Service for detecting scheduling conflicts between allocations."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from campus_scheduler.domain.errors import ValidationError
from campus_scheduler.domain.models import (
    Allocation,
    Conflict,
    ConflictReport,
    ConflictSeverity,
    ConflictType,
)
from campus_scheduler.services.classifier import classify, conflict_sort_key
from campus_scheduler.services.index import ResourceIndex
from campus_scheduler.services.intervals import check_interval

DEFAULT_BLOCKING_TYPES = frozenset({ConflictType.ROOM, ConflictType.FACULTY})


def detect_conflicts(
    proposed: Allocation,
    existing: list[Allocation],
    blocking_types: Iterable[ConflictType] = DEFAULT_BLOCKING_TYPES,
) -> ConflictReport:
    """Return every conflict between *proposed* and *existing*.

    ``existing`` may contain the proposed allocation's own prior version
    (same id); it is excluded from comparison. Room and faculty clashes block
    by default, student clashes are informational.

    Raises ``ValidationError`` for a malformed interval or for duplicate ids
    in *existing*.
    """
    check_interval(proposed.interval)
    _check_unique_ids(existing)

    index = ResourceIndex.build(existing, proposed.date, exclude_id=proposed.id)
    return build_report(classify(proposed, index), blocking_types)


def merge_reports(
    reports: Iterable[ConflictReport],
    blocking_types: Iterable[ConflictType] = DEFAULT_BLOCKING_TYPES,
) -> ConflictReport:
    """Combine per-date reports (e.g. one per timetable occurrence) into one."""
    conflicts = [c for report in reports for c in report.conflicts]
    return build_report(conflicts, blocking_types)


def build_report(
    conflicts: list[Conflict],
    blocking_types: Iterable[ConflictType] = DEFAULT_BLOCKING_TYPES,
) -> ConflictReport:
    """Apply the blocking policy and the canonical ordering to *conflicts*."""
    blocking = frozenset(blocking_types)
    ranked = [
        c.model_copy(
            update={
                "severity": (
                    ConflictSeverity.ERROR
                    if c.type in blocking
                    else ConflictSeverity.WARNING
                )
            }
        )
        for c in sorted(conflicts, key=conflict_sort_key)
    ]
    return ConflictReport(
        conflicts=ranked,
        has_blocking_conflict=any(c.type in blocking for c in ranked),
    )


def _check_unique_ids(existing: list[Allocation]) -> None:
    counts = Counter(a.id for a in existing)
    duplicates = sorted(aid for aid, n in counts.items() if n > 1)
    if duplicates:
        raise ValidationError(
            f"Existing allocations contain duplicate ids: {', '.join(duplicates)}"
        )
