"""
Printable report card of a single student.

The card lists every subject line of the student's report (class score, exam
score, total, grade, remark, pass flag), the summary figures derived from
them, and the saved review of the term.
"""
import asyncio
import logging
from typing import List, Optional

from app.config import settings
from app.schemas.academics import GradeBand, ReportScope
from app.schemas.reports import ReviewRecord, StudentReport, SubjectResult
from app.schemas.students import Student
from app.services.errors import RowNotFound, UpstreamError
from app.services.grading import round2, sort_bands
from app.services.normalize import date_part
from app.services.scope import scope_key
from app.services.stores import Stores

logger = logging.getLogger(__name__)


def build_report_card(
    student: Student,
    scope: ReportScope,
    subjects: List[SubjectResult],
    review: Optional[ReviewRecord],
    bands: List[GradeBand],
) -> StudentReport:
    """Assemble the card; the saved overall score wins over the computed average."""
    count = len(subjects)
    total_sum = sum(subject.total for subject in subjects)
    average = round2(total_sum / count) if count else 0.0
    passes = sum(1 for subject in subjects if subject.passed)

    overall = average
    if review is not None and review.overall_score is not None:
        overall = review.overall_score

    return StudentReport(
        student_id=student.id,
        name=student.name,
        index_no=student.index_no,
        scope_key=scope_key(scope),
        subjects=subjects,
        total_sum=round2(total_sum),
        average=average,
        passes=passes,
        fails=count - passes,
        overall_score=overall,
        overall_position=review.overall_position if review else None,
        attendance=review.attendance if review else None,
        teacher_remarks=review.teacher_remarks if review else "",
        head_remarks=review.head_remarks if review else "",
        reopen_date=date_part(review.reopen_date) if review else "",
        bands=bands,
    )


class ReportCardService:
    def __init__(self, stores: Stores, pass_mark: Optional[float] = None):
        self.stores = stores
        self.pass_mark = pass_mark if pass_mark is not None else settings.REPORT_PASS_MARK

    async def _review(self, scope: ReportScope, student_id: int) -> Optional[ReviewRecord]:
        try:
            return await self.stores.reviews.student_review(scope, student_id)
        except UpstreamError as e:
            logger.warning(f"Review of student {student_id} unavailable: {e}")
            return None

    async def _bands(self, scope: ReportScope) -> List[GradeBand]:
        try:
            return sort_bands(await self.stores.scales.bands(scope.school_id, scope.class_id))
        except UpstreamError as e:
            logger.warning(f"Grading scale unavailable for class {scope.class_id}: {e}")
            return []

    async def student_report(
        self,
        scope: ReportScope,
        student_id: int,
        pass_mark: Optional[float] = None,
    ) -> StudentReport:
        """
        Build the report card of ``student_id`` for ``scope``.

        Raises:
            RowNotFound: The student is not on the class roster
            UpstreamError: The roster or the subject marks could not be loaded
        """
        roster, subjects, review, bands = await asyncio.gather(
            self.stores.roster.students(scope.school_id, scope.class_id),
            self.stores.marks.student_report(
                scope, student_id, pass_mark if pass_mark is not None else self.pass_mark
            ),
            self._review(scope, student_id),
            self._bands(scope),
        )

        student = next((s for s in roster if s.id == student_id), None)
        if student is None:
            raise RowNotFound(f"Student {student_id} is not in class {scope.class_id}.")

        logger.info(f"Report card for student {student_id} in scope {scope_key(scope)}: {len(subjects)} subjects")
        return build_report_card(student, scope, subjects, review, bands)
