"""Exam management: conflict-checked create and update of exams."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError as ModelValidationError

from campus_scheduler.domain.errors import ValidationError
from campus_scheduler.domain.models import (
    AllocationKind,
    ConflictReport,
    Exam,
    ExamRequest,
)
from campus_scheduler.repos.memory import ExamRepository
from campus_scheduler.services.allocations import exam_allocation
from campus_scheduler.services.guard import MutationGuard

logger = logging.getLogger(__name__)


class ExamNotFound(LookupError):
    pass


class ExamService:
    def __init__(self, repo: ExamRepository, guard: MutationGuard) -> None:
        self.repo = repo
        self.guard = guard

    def get(self, exam_id: str) -> Exam:
        exam = self.repo.get(exam_id)
        if exam is None:
            raise ExamNotFound(exam_id)
        return exam

    def list_exams(self) -> list[Exam]:
        return sorted(
            self.repo.list_all(), key=lambda e: (e.scheduled_date, e.start_time, e.id)
        )

    def check(self, request: ExamRequest, exam_id: str | None = None) -> ConflictReport:
        """Dry-run conflict check; pass *exam_id* when checking an edit."""
        exam = self._build(request, exam_id)
        return self.guard.check([exam_allocation(exam)])

    def create(self, request: ExamRequest) -> Exam:
        exam = self._build(request)
        return self._commit(exam)

    def update(self, exam_id: str, request: ExamRequest) -> Exam:
        current = self.get(exam_id)
        exam = self._build(request, exam_id).model_copy(
            update={
                "created_at": current.created_at,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        return self._commit(exam)

    def _build(self, request: ExamRequest, exam_id: str | None = None) -> Exam:
        fields = request.model_dump()
        if exam_id is not None:
            fields["id"] = exam_id
        try:
            return Exam(**fields)
        except ModelValidationError as exc:
            raise ValidationError(f"Invalid exam: {exc}") from exc

    def _commit(self, exam: Exam) -> Exam:
        def write(report: ConflictReport) -> Exam:
            stored = exam.model_copy(update={"conflict_warnings": report.conflicts})
            self.repo.add(stored)
            return stored

        stored = self.guard.commit(
            exam.id, AllocationKind.EXAM, [exam_allocation(exam)], write
        )
        if stored.conflict_warnings:
            logger.info(
                "exam %s stored with %d conflict warning(s)",
                stored.id,
                len(stored.conflict_warnings),
            )
        return stored
