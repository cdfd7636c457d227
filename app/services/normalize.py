"""
Normalization of ORDS payloads.

The backend is inconsistent about key casing (``CLASS_ID`` vs ``class_id``)
and about which alias it uses for a field (``student`` vs ``student_id``).
Each collaborator payload has exactly one function here that maps a raw row
onto the canonical schema; business code never looks at raw rows.
"""
import math
from typing import Any, Dict, Optional

from app.schemas.academics import ClassOption, GradeBand, LovEntry, MarkRecord, SubjectAssignment
from app.schemas.attendance import AttendanceSummaryRow
from app.schemas.reports import ReviewRecord, SubjectResult, UpsertResult
from app.schemas.students import Student


def _lower_keys(row: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in (row or {}).items()}


def pick(row: Dict[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first non-null value among ``names``, ignoring key casing."""
    lowered = _lower_keys(row)
    for name in names:
        value = lowered.get(name.lower())
        if value is not None:
            return value
    return default


def to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    number = to_float(value, None)
    if number is None:
        return default
    return int(number)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# Roster store
def normalize_student(row: Dict[str, Any]) -> Optional[Student]:
    student_id = to_int(pick(row, "student_id", "id"))
    if student_id is None:
        return None
    return Student(
        id=student_id,
        name=to_text(pick(row, "full_name", "name", default="")),
        index_no=to_text(pick(row, "index_no", default="")),
        class_id=to_int(pick(row, "class_id", "class")),
    )


# Lookup store
def normalize_class(row: Dict[str, Any]) -> Optional[ClassOption]:
    class_id = to_int(pick(row, "class_id", "id"))
    if class_id is None:
        return None
    return ClassOption(id=class_id, name=to_text(pick(row, "class_name", "name", default="")))


def normalize_year(row: Dict[str, Any]) -> Optional[LovEntry]:
    year_id = to_int(pick(row, "academic_year_id", "id"))
    if year_id is None:
        return None
    return LovEntry(
        id=year_id,
        name=to_text(pick(row, "academic_year_name", "name", default="")),
        status=to_text(pick(row, "status", default="")),
    )


def normalize_term(row: Dict[str, Any]) -> Optional[LovEntry]:
    term_id = to_int(pick(row, "term_id", "id"))
    if term_id is None:
        return None
    return LovEntry(
        id=term_id,
        name=to_text(pick(row, "term_name", "name", default="")),
        status=to_text(pick(row, "status", default="")),
    )


def normalize_assignment(row: Dict[str, Any]) -> Optional[SubjectAssignment]:
    class_id = to_int(pick(row, "class_id"))
    subject_id = to_int(pick(row, "subject_id"))
    if class_id is None or subject_id is None:
        return None
    return SubjectAssignment(
        class_id=class_id,
        class_name=to_text(pick(row, "class_name", default="")) or f"Class {class_id}",
        subject_id=subject_id,
        subject_name=to_text(pick(row, "subject_name", default="")) or f"Subject {subject_id}",
    )


# Grading scale store
def normalize_band(row: Dict[str, Any]) -> GradeBand:
    return GradeBand(
        id=to_int(pick(row, "id")),
        class_id=to_int(pick(row, "class", "class_id")),
        grade=to_text(pick(row, "grade", default="")),
        min_percent=to_float(pick(row, "percent_from")),
        max_percent=to_float(pick(row, "percent_to")),
        remark=to_text(pick(row, "remarks", "remark", default="")),
    )


# Marks store
def normalize_mark(row: Dict[str, Any]) -> Optional[MarkRecord]:
    student_id = to_int(pick(row, "student", "student_id"))
    if student_id is None:
        return None
    position = pick(row, "position", default="")
    return MarkRecord(
        id=to_int(pick(row, "id", "add_marks_id")),
        student_id=student_id,
        roll_no=to_text(pick(row, "roll_no", default="")),
        class_score=to_float(pick(row, "class_score"), None),
        exam_score=to_float(pick(row, "exam_score"), None),
        total=to_float(pick(row, "total"), None),
        grade=to_text(pick(row, "grade", default="")),
        remark=to_text(pick(row, "meaning", "remark", default="")),
        position=to_text(position),
    )


def normalize_subject_result(row: Dict[str, Any]) -> SubjectResult:
    """One subject line of a student's report; unreadable scores count as 0."""
    subject_id = to_int(pick(row, "subject_id", "subject"))
    default_name = f"Subject {subject_id}" if subject_id is not None else ""
    passed = pick(row, "pass")
    return SubjectResult(
        subject_id=subject_id,
        subject_name=to_text(pick(row, "subject_name", default="")) or default_name,
        class_score=to_float(pick(row, "classwork", "class_score")),
        exam_score=to_float(pick(row, "exam", "exam_score")),
        total=to_float(pick(row, "total")),
        grade=to_text(pick(row, "grade", default="")),
        remark=to_text(pick(row, "remark", "meaning", default="")),
        passed=passed is True or to_text(passed).upper() == "Y",
    )


def date_part(value: Any) -> str:
    """Date portion of an ISO timestamp, e.g. 2025-01-07T00:00:00Z -> 2025-01-07."""
    text = to_text(value)
    return text[:10] if len(text) >= 10 else text


# Attendance store
def normalize_attendance(row: Dict[str, Any]) -> Optional[AttendanceSummaryRow]:
    student_id = to_int(pick(row, "student_id", "student"))
    if student_id is None:
        return None
    return AttendanceSummaryRow(
        student_id=student_id,
        class_id=to_int(pick(row, "class_id", "class")),
        present=to_int(pick(row, "present", "present_count"), 0),
    )


# Review store
def normalize_review(row: Dict[str, Any]) -> Optional[ReviewRecord]:
    student_id = to_int(pick(row, "student", "student_id"))
    if student_id is None:
        return None
    return ReviewRecord(
        id=to_int(pick(row, "id")),
        student_id=student_id,
        teacher_remarks=to_text(pick(row, "teacher_remarks", default="")),
        head_remarks=to_text(pick(row, "head_remarks", default="")),
        attendance=to_int(pick(row, "attendance"), 0),
        reopen_date=to_text(pick(row, "reopen_date", default="")),
        overall_score=to_float(pick(row, "overall_score"), None),
        overall_position=to_int(pick(row, "overall_position")),
    )


# Write handlers of every store
def normalize_upsert_response(payload: Optional[Dict[str, Any]]) -> UpsertResult:
    """
    Interpret the small JSON object returned by an upsert/delete handler.

    ``ok`` means a positive success signal was present (status "ok"/"success",
    ``success: true`` or an issued id). ``rejected`` means the handler
    explicitly reported failure.
    """
    if not payload:
        return UpsertResult()

    status = to_text(pick(payload, "status")).lower()
    success = pick(payload, "success")
    record_id = to_int(pick(payload, "id"))
    message = pick(payload, "message", "error")

    ok = status in ("ok", "success") or success is True or record_id is not None
    rejected = success is False or status in ("error", "fail", "failed")

    return UpsertResult(
        ok=ok and not rejected,
        rejected=rejected,
        id=record_id,
        message=to_text(message) or None,
    )
