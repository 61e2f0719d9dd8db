"""Lifecycle events emitted by the mutation guard."""

from __future__ import annotations

from pydantic import BaseModel

from campus_scheduler.domain.models import AllocationKind, ConflictReport


class AllocationProposed(BaseModel):
    """Fired when a create or update enters the guard."""

    allocation_id: str
    kind: AllocationKind
    dates: list[str]


class AllocationValidated(BaseModel):
    """Fired when the first check found no blocking conflict."""

    allocation_id: str
    report: ConflictReport


class AllocationRejected(BaseModel):
    """Fired when a proposal is refused because of a blocking conflict."""

    allocation_id: str
    report: ConflictReport


class AllocationStale(BaseModel):
    """Fired when commit-time re-validation lost a race to another writer."""

    allocation_id: str
    report: ConflictReport


class AllocationPersisted(BaseModel):
    """Fired after the write callback stored the allocation."""

    allocation_id: str
    kind: AllocationKind
    report: ConflictReport
