from typing import Optional, List
from pydantic import BaseModel

from app.schemas.academics import GradeBand


# Review (report card) record as persisted by the review store
class ReviewRecord(BaseModel):
    id: Optional[int] = None
    student_id: int
    teacher_remarks: str = ""
    head_remarks: str = ""
    attendance: int = 0
    reopen_date: str = ""
    overall_score: Optional[float] = None
    overall_position: Optional[int] = None


class UpsertResult(BaseModel):
    ok: bool = False
    rejected: bool = False
    id: Optional[int] = None
    message: Optional[str] = None


class StudentAverage(BaseModel):
    student_id: int
    name: str = ""
    index_no: str = ""
    avg: float = 0


class Progress(BaseModel):
    done: int = 0
    total: int = 0


class ReportRow(BaseModel):
    id: Optional[int] = None
    student_id: int
    name: str = ""
    index_no: str = ""
    avg: float = 0
    position: Optional[int] = None
    present_days: int = 0
    teacher_remarks: str = ""
    head_remarks: str = ""
    reopen_date: str = ""
    dirty: bool = False
    saved_ok: bool = False


class RowEdit(BaseModel):
    field: str
    value: str = ""


class ReopenDateRequest(BaseModel):
    reopen_date: str


class SaveAllResult(BaseModel):
    saved: int = 0
    failed_student_id: Optional[int] = None
    message: str = ""


class ReportState(BaseModel):
    scope_key: str
    loading: bool
    progress: Progress
    reopen_date: str = ""
    unsaved: int = 0
    failures: List[int] = []
    rows: List[ReportRow]


# Per-student report card
class SubjectResult(BaseModel):
    subject_id: Optional[int] = None
    subject_name: str = ""
    class_score: float = 0
    exam_score: float = 0
    total: float = 0
    grade: str = ""
    remark: str = ""
    passed: bool = False


class StudentReport(BaseModel):
    student_id: int
    name: str = ""
    index_no: str = ""
    scope_key: str
    subjects: List[SubjectResult]
    total_sum: float = 0
    average: float = 0
    passes: int = 0
    fails: int = 0
    overall_score: float = 0
    overall_position: Optional[int] = None
    attendance: Optional[int] = None
    teacher_remarks: str = ""
    head_remarks: str = ""
    reopen_date: str = ""
    bands: List[GradeBand] = []
