"""Mutation guard: validate, serialise and commit scheduling writes."""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager
from typing import Callable, TypeVar

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.errors import ConflictError, StaleSnapshotError
from campus_scheduler.domain.events import (
    AllocationPersisted,
    AllocationProposed,
    AllocationRejected,
    AllocationStale,
    AllocationValidated,
)
from campus_scheduler.domain.models import (
    Allocation,
    AllocationKind,
    ConflictReport,
    ConflictType,
)
from campus_scheduler.services.conflicts import (
    DEFAULT_BLOCKING_TYPES,
    detect_conflicts,
    merge_reports,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Snapshot = Callable[[dt.date], list[Allocation]]


def resource_keys(allocations: Iterable[Allocation]) -> list[tuple[str, ...]]:
    """Serialisation keys for a set of proposals: one per (room, date) and (faculty, date).

    Students are not locked; student conflicts are advisory under concurrency.
    """
    keys: set[tuple[str, ...]] = set()
    for allocation in allocations:
        day = allocation.date.isoformat()
        if allocation.room_key is not None:
            building, room = allocation.room_key
            keys.add(("room", building, room, day))
        for faculty_id in allocation.faculty_ids:
            keys.add(("faculty", faculty_id, day))
    return sorted(keys)


class ResourceLocks:
    """Registry of per-resource locks.

    Keys are always acquired in sorted order so two writers touching
    overlapping resources cannot deadlock. A key's lock lives only while
    some writer holds or waits on it.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[tuple[str, ...], threading.Lock] = {}
        self._users: Counter[tuple[str, ...]] = Counter()

    def _acquire(self, key: tuple[str, ...]) -> None:
        with self._registry_lock:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] += 1
        lock.acquire()

    def _release(self, key: tuple[str, ...]) -> None:
        with self._registry_lock:
            self._locks[key].release()
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[tuple[str, ...]]) -> Iterator[None]:
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                self._acquire(key)
                stack.callback(self._release, key)
            yield


class MutationGuard:
    """Sits between the exam/timetable services and their repositories.

    ``snapshot(date)`` must return the latest existing allocations on that
    date; it is called again under the resource locks right before writing.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        locks: ResourceLocks | None = None,
        bus: EventBus | None = None,
        blocking_types: Iterable[ConflictType] = DEFAULT_BLOCKING_TYPES,
    ) -> None:
        self.snapshot = snapshot
        self.locks = locks or ResourceLocks()
        self.bus = bus or EventBus()
        self.blocking_types = frozenset(blocking_types)

    def check(self, proposals: list[Allocation]) -> ConflictReport:
        """Detect conflicts for every proposal and aggregate them into one report."""
        reports = [
            detect_conflicts(p, self.snapshot(p.date), self.blocking_types)
            for p in proposals
        ]
        return merge_reports(reports, self.blocking_types)

    def commit(
        self,
        allocation_id: str,
        kind: AllocationKind,
        proposals: list[Allocation],
        write: Callable[[ConflictReport], T],
    ) -> T:
        """Validate *proposals*, re-validate under lock, then call ``write(report)``.

        Raises ``ConflictError`` when the first check finds a blocking
        conflict and ``StaleSnapshotError`` when only the commit-time check
        does. Nothing is written in either case.
        """
        self.bus.publish(
            AllocationProposed(
                allocation_id=allocation_id,
                kind=kind,
                dates=sorted({p.date.isoformat() for p in proposals}),
            )
        )

        report = self.check(proposals)
        if report.has_blocking_conflict:
            logger.info(
                "rejected %s %s: %d conflict(s)",
                kind,
                allocation_id,
                len(report.conflicts),
            )
            self.bus.publish(AllocationRejected(allocation_id=allocation_id, report=report))
            raise ConflictError(report)
        self.bus.publish(AllocationValidated(allocation_id=allocation_id, report=report))

        with self.locks.hold(resource_keys(proposals)):
            latest = self.check(proposals)
            if latest.has_blocking_conflict:
                logger.warning(
                    "stale snapshot for %s %s: a concurrent write took a resource",
                    kind,
                    allocation_id,
                )
                self.bus.publish(AllocationStale(allocation_id=allocation_id, report=latest))
                raise StaleSnapshotError(latest)
            result = write(latest)

        logger.info(
            "persisted %s %s with %d warning(s)",
            kind,
            allocation_id,
            len(latest.conflicts),
        )
        self.bus.publish(
            AllocationPersisted(allocation_id=allocation_id, kind=kind, report=latest)
        )
        return result
