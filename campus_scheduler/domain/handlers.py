"""Lifecycle event handlers: wired up at application startup."""

from __future__ import annotations

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.events import (
    AllocationPersisted,
    AllocationProposed,
    AllocationRejected,
    AllocationStale,
    AllocationValidated,
)
from campus_scheduler.domain.models import (
    ConflictReport,
    TimelineEntry,
    TimelineEntryType,
)
from campus_scheduler.repos.memory import TimelineRepository


def _conflict_payload(report: ConflictReport) -> dict:
    return {
        "conflicting_allocation_ids": sorted(
            {c.conflicting_allocation_id for c in report.conflicts}
        ),
        "types": sorted({str(c.type) for c in report.conflicts}),
        "has_blocking_conflict": report.has_blocking_conflict,
    }


class HandlerRegistry:
    """Records each allocation's PROPOSED -> VALIDATED -> PERSISTED / REJECTED path."""

    def __init__(self, bus: EventBus, timeline_repo: TimelineRepository) -> None:
        self.bus = bus
        self.timeline_repo = timeline_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(AllocationProposed, self.on_proposed)
        self.bus.subscribe(AllocationValidated, self.on_validated)
        self.bus.subscribe(AllocationRejected, self.on_rejected)
        self.bus.subscribe(AllocationStale, self.on_stale)
        self.bus.subscribe(AllocationPersisted, self.on_persisted)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_proposed(self, event: AllocationProposed) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                allocation_id=event.allocation_id,
                type=TimelineEntryType.PROPOSED,
                payload={"kind": str(event.kind), "dates": event.dates},
            )
        )

    def on_validated(self, event: AllocationValidated) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                allocation_id=event.allocation_id,
                type=TimelineEntryType.VALIDATED,
                payload={"warnings": len(event.report.conflicts)},
            )
        )

    def on_rejected(self, event: AllocationRejected) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                allocation_id=event.allocation_id,
                type=TimelineEntryType.REJECTED,
                payload=_conflict_payload(event.report),
            )
        )

    def on_stale(self, event: AllocationStale) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                allocation_id=event.allocation_id,
                type=TimelineEntryType.STALE,
                payload=_conflict_payload(event.report),
            )
        )

    def on_persisted(self, event: AllocationPersisted) -> None:
        # 1. Timeline: persisted
        self.timeline_repo.add(
            TimelineEntry(
                allocation_id=event.allocation_id,
                type=TimelineEntryType.PERSISTED,
                payload={"kind": str(event.kind)},
            )
        )

        # 2. Informational conflicts stored with the record get their own entry
        if event.report.conflicts:
            self.timeline_repo.add(
                TimelineEntry(
                    allocation_id=event.allocation_id,
                    type=TimelineEntryType.CONFLICT_DETECTED,
                    payload=_conflict_payload(event.report),
                )
            )
