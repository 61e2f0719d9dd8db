"""Half-open interval primitives used by the conflict engine."""

from __future__ import annotations

from campus_scheduler.domain.errors import ValidationError
from campus_scheduler.domain.models import Allocation, Interval


def check_interval(interval: Interval) -> None:
    """Raise ``ValidationError`` unless ``interval`` is naive and ``start < end``."""
    if interval.start.tzinfo is not None or interval.end.tzinfo is not None:
        raise ValidationError(f"Malformed interval: {interval!r} carries a timezone")
    if interval.start >= interval.end:
        raise ValidationError(
            f"Malformed interval: start {interval.start} is not before end {interval.end}"
        )


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True if the two half-open intervals intersect.

    Overlap rule: a.start < b.end AND b.start < a.end.
    Exact boundary touches (a.end == b.start) are NOT considered overlaps.
    """
    return a.start < b.end and b.start < a.end


def allocations_overlap(a: Allocation, b: Allocation) -> bool:
    """Same calendar date and intersecting intervals."""
    return a.date == b.date and overlaps(a.interval, b.interval)


def intersection(a: Interval, b: Interval) -> Interval:
    """Return the overlapping part of two intervals that are known to overlap."""
    return Interval(start=max(a.start, b.start), end=min(a.end, b.end))
