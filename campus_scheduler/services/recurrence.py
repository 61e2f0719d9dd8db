"""Service for expanding weekly timetable entries into dated occurrences."""

from __future__ import annotations

import datetime as dt

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from campus_scheduler.domain.models import DayOfWeek, TimetableEntry

_DAY_MAP = {
    DayOfWeek.MONDAY: MO,
    DayOfWeek.TUESDAY: TU,
    DayOfWeek.WEDNESDAY: WE,
    DayOfWeek.THURSDAY: TH,
    DayOfWeek.FRIDAY: FR,
    DayOfWeek.SATURDAY: SA,
    DayOfWeek.SUNDAY: SU,
}


def occurrence_dates(
    day_of_week: DayOfWeek, start: dt.date, end: dt.date
) -> list[dt.date]:
    """Return every *day_of_week* between *start* and *end*, both inclusive."""
    if end < start:
        return []
    rule = rrule(
        WEEKLY,
        byweekday=_DAY_MAP[day_of_week],
        dtstart=dt.datetime.combine(start, dt.time.min),
        until=dt.datetime.combine(end, dt.time.max),
    )
    return [occurrence.date() for occurrence in rule]


def validation_horizon(
    entry: TimetableEntry, horizon_weeks: int
) -> tuple[dt.date, dt.date]:
    """Dates an entry is checked over: its term, or *horizon_weeks* from term start."""
    end = entry.term_end or entry.term_start + dt.timedelta(weeks=horizon_weeks)
    return entry.term_start, end


def entry_dates(entry: TimetableEntry, horizon_weeks: int) -> list[dt.date]:
    start, end = validation_horizon(entry, horizon_weeks)
    return occurrence_dates(entry.day_of_week, start, end)


def occurs_on(entry: TimetableEntry, on_date: dt.date, horizon_weeks: int) -> bool:
    """True if the weekly entry has an occurrence on *on_date*."""
    start, end = validation_horizon(entry, horizon_weeks)
    return start <= on_date <= end and DayOfWeek.of(on_date) == entry.day_of_week
