import asyncio
from typing import Dict, List, Optional

from app.schemas.academics import GradeBand, MarkRecord
from app.schemas.attendance import AttendanceSummaryRow
from app.schemas.reports import ReviewRecord, SubjectResult, UpsertResult
from app.schemas.students import Student
from app.services.errors import UpstreamError


class FakeRosterStore:
    def __init__(self, by_class: Optional[Dict[int, List[Student]]] = None):
        self.by_class = by_class or {}
        self.calls = []

    async def students(self, school_id, class_id):
        self.calls.append((school_id, class_id))
        return list(self.by_class.get(class_id, []))


class FakeMarksStore:
    def __init__(self, totals: Optional[Dict[int, List[float]]] = None, marks: Optional[List[MarkRecord]] = None):
        self.totals = totals or {}
        self.marks_list = marks or []
        self.failing = set()
        self.gates: Dict[int, asyncio.Event] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.upserts = []
        self.deletes = []
        self.upsert_result = UpsertResult(ok=True)
        self.upsert_gate: Optional[asyncio.Event] = None
        self.subject_rows: Dict[int, List[SubjectResult]] = {}
        self.pass_marks = []

    async def student_report_totals(self, scope, student_id):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(student_id)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0)
            if student_id in self.failing:
                raise UpstreamError("HTTP 500", status_code=500)
            return list(self.totals.get(student_id, []))
        finally:
            self.in_flight -= 1

    async def student_report(self, scope, student_id, pass_mark=None):
        self.pass_marks.append(pass_mark)
        return list(self.subject_rows.get(student_id, []))

    async def marks(self, scope):
        return list(self.marks_list)

    async def upsert_mark(self, params):
        self.upserts.append(params)
        if self.upsert_gate is not None:
            await self.upsert_gate.wait()
        return self.upsert_result

    async def delete_mark(self, mark_id, school_id):
        self.deletes.append((mark_id, school_id))
        return UpsertResult(ok=True)


class FakeAttendanceStore:
    def __init__(self, rows: Optional[List[AttendanceSummaryRow]] = None, fail: bool = False):
        self.rows = rows or []
        self.fail = fail

    async def summary(self, scope):
        if self.fail:
            raise UpstreamError("HTTP 503", status_code=503)
        return list(self.rows)


class FakeReviewStore:
    def __init__(self, reviews: Optional[List[ReviewRecord]] = None):
        self.review_list = reviews or []
        self.upserts = []
        self.results: List[UpsertResult] = []
        self.next_id = 500
        self.gate: Optional[asyncio.Event] = None

    async def reviews(self, scope):
        return list(self.review_list)

    async def student_review(self, scope, student_id):
        for review in self.review_list:
            if review.student_id == student_id:
                return review
        return None

    async def upsert_review(self, params):
        self.upserts.append(dict(params))
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            return self.results.pop(0)
        if params.get("p_id") not in (None, ""):
            return UpsertResult(ok=True, id=int(params["p_id"]))
        self.next_id += 1
        return UpsertResult(ok=True, id=self.next_id)


class FakeScaleStore:
    def __init__(self, bands: Optional[List[GradeBand]] = None):
        self.band_list = bands or []
        self.upserts = []
        self.deletes = []
        self.upsert_result = UpsertResult(ok=True, id=99)

    async def bands(self, school_id, class_id):
        return list(self.band_list)

    async def upsert_band(self, school_id, class_id, band):
        self.upserts.append((school_id, class_id, band))
        return self.upsert_result

    async def delete_band(self, band_id, school_id, class_id):
        self.deletes.append((band_id, school_id, class_id))
        return UpsertResult(ok=True)


class FakeStores:
    def __init__(self, roster=None, marks=None, attendance=None, reviews=None, scales=None):
        self.roster = roster or FakeRosterStore()
        self.marks = marks or FakeMarksStore()
        self.attendance = attendance or FakeAttendanceStore()
        self.reviews = reviews or FakeReviewStore()
        self.scales = scales or FakeScaleStore()


