"""
ORDS-backed stores consumed by the report and score services.

Each store maps one backend collaborator onto canonical schemas through
``app.services.normalize``. Stores raise ``UpstreamError`` on transport or
HTTP failures; deciding whether a failure is fatal is left to the caller.
"""
import logging
from typing import Any, Dict, List, Optional

from app.schemas.academics import (
    ClassOption, GradeBand, GradeBandCreate, LovEntry, MarkRecord, ReportScope, ScoreScope, SubjectAssignment
)
from app.schemas.attendance import AttendanceSummaryRow
from app.schemas.reports import ReviewRecord, SubjectResult, UpsertResult
from app.schemas.students import Student
from app.services.normalize import (
    normalize_assignment, normalize_attendance, normalize_band, normalize_class, normalize_mark,
    normalize_review, normalize_student, normalize_subject_result, normalize_term,
    normalize_upsert_response, normalize_year,
)
from app.services.ords import OrdsClient

logger = logging.getLogger(__name__)


def _drop_empty(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _collect(rows, normalizer) -> list:
    out = []
    for row in rows:
        item = normalizer(row)
        if item is not None:
            out.append(item)
    return out


class RosterStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def students(self, school_id: int, class_id: int) -> List[Student]:
        rows = await self.client.get_array(
            "student/get/students",
            {"p_school_id": school_id, "p_class_id": class_id},
        )
        students = _collect(rows, normalize_student)
        # The handler filters loosely; keep only pupils actually in this class
        return [s for s in students if s.class_id == class_id]


class MarksStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def student_report(
        self,
        scope: ReportScope,
        student_id: int,
        pass_mark: Optional[float] = None,
    ) -> List[SubjectResult]:
        rows = await self.client.get_array(
            "exams/marks/student",
            {
                "p_school_id": scope.school_id,
                "p_year_id": scope.year_id,
                "p_term_id": scope.term_id,
                "p_class_id": scope.class_id,
                "p_student_id": student_id,
                "p_pass_mark": pass_mark,
            },
        )
        return [normalize_subject_result(row) for row in rows]

    async def student_report_totals(self, scope: ReportScope, student_id: int) -> List[float]:
        return [subject.total for subject in await self.student_report(scope, student_id)]

    async def marks(self, scope: ScoreScope) -> List[MarkRecord]:
        rows = await self.client.get_array(
            "exams/marks/get",
            {
                "p_school_id": scope.school_id,
                "p_academic_year": scope.year_id,
                "p_academic_term": scope.term_id,
                "p_class": scope.class_id,
                "p_subject": scope.subject_id,
            },
        )
        return _collect(rows, normalize_mark)

    async def upsert_mark(self, params: Dict[str, Any]) -> UpsertResult:
        payload = await self.client.get_object("exams/marks/add", _drop_empty(params))
        return normalize_upsert_response(payload)

    async def delete_mark(self, mark_id: int, school_id: int) -> UpsertResult:
        payload = await self.client.get_object(
            "exams/marks/delete",
            {"p_id": mark_id, "p_school_id": school_id},
        )
        return normalize_upsert_response(payload)


class GradingScaleStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def bands(self, school_id: int, class_id: Optional[int]) -> List[GradeBand]:
        rows = await self.client.get_array(
            "exams/scheme/get",
            {"p_school_id": school_id, "p_class": class_id},
        )
        return [normalize_band(row) for row in rows]

    async def upsert_band(self, school_id: int, class_id: int, band: GradeBandCreate) -> UpsertResult:
        params = {
            "p_school_id": school_id,
            "p_class": class_id,
            "p_grade": band.grade,
            "p_percent_from": band.percent_from,
            "p_percent_to": band.percent_to,
            "p_remarks": band.remarks,
            "p_id": band.id,
        }
        payload = await self.client.get_object("exams/scheme/upsert", params)
        return normalize_upsert_response(payload)

    async def delete_band(self, band_id: int, school_id: int, class_id: int) -> UpsertResult:
        payload = await self.client.get_object(
            "exams/scheme/delete",
            {"p_id": band_id, "p_school_id": school_id, "p_class": class_id},
        )
        return normalize_upsert_response(payload)


class AttendanceStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def summary(self, scope: ReportScope) -> List[AttendanceSummaryRow]:
        rows = await self.client.get_array(
            "report/get/attendance/summary",
            {
                "p_school_id": scope.school_id,
                "p_class_id": scope.class_id,
                "p_year_id": scope.year_id,
                "p_term_id": scope.term_id,
            },
        )
        return _collect(rows, normalize_attendance)


class ReviewStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def reviews(self, scope: ReportScope) -> List[ReviewRecord]:
        rows = await self.client.get_array(
            "exams/review/list",
            {
                "p_school_id": scope.school_id,
                "p_year_id": scope.year_id,
                "p_term_id": scope.term_id,
                "p_class_id": scope.class_id,
            },
        )
        return _collect(rows, normalize_review)

    async def student_review(self, scope: ReportScope, student_id: int) -> Optional[ReviewRecord]:
        payload = await self.client.get_object(
            "exams/review/student",
            {
                "p_school_id": scope.school_id,
                "p_year_id": scope.year_id,
                "p_term_id": scope.term_id,
                "p_class_id": scope.class_id,
                "p_student_id": student_id,
            },
        )
        if not payload:
            return None
        # The single-review handler may omit the student column
        return normalize_review({"student_id": student_id, **payload})

    async def upsert_review(self, params: Dict[str, Any]) -> UpsertResult:
        payload = await self.client.get_object("exams/review/upsert", params)
        return normalize_upsert_response(payload)


class LookupStore:
    def __init__(self, client: OrdsClient):
        self.client = client

    async def school_classes(self, school_id: int) -> List[ClassOption]:
        rows = await self.client.get_array("academic/get/classes", {"p_school_id": school_id})
        return _collect(rows, normalize_class)

    async def class_teacher_classes(self, user_id: int) -> List[ClassOption]:
        rows = await self.client.get_array("academic/class_teacher/class", {"p_user_id": user_id})
        return _collect(rows, normalize_class)

    async def subject_assignments(self, school_id: int, user_id: int) -> List[SubjectAssignment]:
        rows = await self.client.get_array(
            "academic/get/subject_teacher",
            {"p_school_id": school_id, "p_user_id": user_id},
        )
        return _collect(rows, normalize_assignment)

    async def academic_years(self, school_id: int) -> List[LovEntry]:
        rows = await self.client.get_array("academic/get/academic_year", {"p_school_id": school_id})
        return _collect(rows, normalize_year)

    async def terms(self, school_id: int) -> List[LovEntry]:
        rows = await self.client.get_array("academic/get/term", {"p_school_id": school_id})
        return _collect(rows, normalize_term)


class Stores:
    """Bundle of every store, built from one ORDS client."""

    def __init__(self, client: OrdsClient):
        self.roster = RosterStore(client)
        self.marks = MarksStore(client)
        self.scales = GradingScaleStore(client)
        self.attendance = AttendanceStore(client)
        self.reviews = ReviewStore(client)
        self.lookups = LookupStore(client)
