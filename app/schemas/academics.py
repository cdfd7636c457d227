from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator


# Report scope schemas
class ReportScope(BaseModel):
    school_id: int
    year_id: int
    term_id: int
    class_id: int


class ScoreScope(ReportScope):
    subject_id: int


class ScopeSelection(BaseModel):
    """Year/term/class picked by the caller; the school comes from the token."""
    year_id: int = Field(..., gt=0)
    term_id: int = Field(..., gt=0)
    class_id: int = Field(..., gt=0)


class ScoreScopeSelection(ScopeSelection):
    subject_id: int = Field(..., gt=0)


# Lookup schemas
class LovEntry(BaseModel):
    id: int
    name: str = ""
    status: str = ""

    @property
    def is_current(self) -> bool:
        return self.status.strip().upper() == "CURRENT"


class ClassOption(BaseModel):
    id: int
    name: str = ""


class SubjectAssignment(BaseModel):
    class_id: int
    class_name: str = ""
    subject_id: int
    subject_name: str = ""


class AcademicLookups(BaseModel):
    classes: List[ClassOption]
    years: List[LovEntry]
    terms: List[LovEntry]
    default_class_id: Optional[int] = None
    default_year_id: Optional[int] = None
    default_term_id: Optional[int] = None


# Grading scale schemas
class GradeBand(BaseModel):
    id: Optional[int] = None
    class_id: Optional[int] = None
    grade: str = ""
    min_percent: float = 0
    max_percent: float = 0
    remark: str = ""


class GradeBandCreate(BaseModel):
    id: Optional[int] = None
    grade: str
    percent_from: float
    percent_to: float
    remarks: str = ""

    @field_validator("grade", "remarks")
    @classmethod
    def strip_text(cls, v):
        return (v or "").strip()


class GradeResult(BaseModel):
    grade: str = ""
    remark: str = ""


# Score entry schemas
class MarkRecord(BaseModel):
    id: Optional[int] = None
    student_id: int
    roll_no: str = ""
    class_score: Optional[float] = None
    exam_score: Optional[float] = None
    total: Optional[float] = None
    grade: str = ""
    remark: str = ""
    position: str = ""


class MarkRow(BaseModel):
    student_id: int
    name: str
    index_no: str = ""
    class_score: Optional[float] = None
    exam_score: Optional[float] = None
    total: float = 0
    grade: str = ""
    remark: str = ""
    position: str = ""
    mark_id: Optional[int] = None
    exists: bool = False
    dirty: bool = False
    saved_ok: bool = False


class CellUpdate(BaseModel):
    field: str
    value: Union[float, str, None] = None


class ScoreSheet(BaseModel):
    scope_key: str
    rows: List[MarkRow]
    bands: List[GradeBand]
    unsaved: int
