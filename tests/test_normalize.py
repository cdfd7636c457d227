from app.services.normalize import (
    date_part, normalize_attendance, normalize_band, normalize_mark, normalize_review, normalize_student,
    normalize_subject_result, normalize_upsert_response, normalize_year, pick, to_float,
)


def test_pick_ignores_casing():
    assert pick({"CLASS_ID": 4}, "class_id") == 4
    assert pick({"class_id": None, "CLASS": 9}, "class_id", "class") == 9
    assert pick({}, "missing", default="x") == "x"


def test_to_float_handles_garbage():
    assert to_float("12.5") == 12.5
    assert to_float("abc") == 0.0
    assert to_float("", None) is None
    assert to_float(float("nan")) == 0.0


def test_student_upper_and_lower_case():
    upper = normalize_student({"STUDENT_ID": "7", "FULL_NAME": "Yaw Asante", "INDEX_NO": "B12", "CLASS_ID": 3})
    lower = normalize_student({"student_id": 7, "full_name": "Yaw Asante", "index_no": "B12", "class_id": "3"})
    assert upper == lower
    assert upper.id == 7 and upper.class_id == 3


def test_student_without_id_dropped():
    assert normalize_student({"FULL_NAME": "Nobody"}) is None


def test_band_fields():
    band = normalize_band({"ID": 2, "GRADE": "A1", "PERCENT_FROM": "80", "PERCENT_TO": 100, "REMARKS": "Excellent", "CLASS": 4})
    assert band.min_percent == 80 and band.max_percent == 100
    assert band.grade == "A1" and band.remark == "Excellent" and band.class_id == 4


def test_mark_keeps_empty_scores_empty():
    mark = normalize_mark({"ADD_MARKS_ID": 11, "STUDENT": 3, "CLASS_SCORE": "", "EXAM_SCORE": 45, "MEANING": "Pass"})
    assert mark.id == 11
    assert mark.class_score is None
    assert mark.exam_score == 45
    assert mark.remark == "Pass"


def test_attendance_row_aliases():
    row = normalize_attendance({"STUDENT": 4, "PRESENT_COUNT": "52"})
    assert row.student_id == 4 and row.present == 52 and row.class_id is None


def test_review_row():
    review = normalize_review({
        "ID": 31, "STUDENT": "5", "TEACHER_REMARKS": "Hardworking", "HEAD_REMARKS": None,
        "ATTENDANCE": "60", "REOPEN_DATE": "2025-01-07 ",
    })
    assert review.id == 31 and review.student_id == 5
    assert review.head_remarks == ""
    assert review.attendance == 60
    assert review.reopen_date == "2025-01-07"


def test_year_status():
    year = normalize_year({"ACADEMIC_YEAR_ID": 3, "ACADEMIC_YEAR_NAME": "2024/2025", "STATUS": "current"})
    assert year.is_current


def test_upsert_response_variants():
    assert normalize_upsert_response({"status": "ok"}).ok
    assert normalize_upsert_response({"STATUS": "OK"}).ok
    assert normalize_upsert_response({"ID": 14}).id == 14
    assert normalize_upsert_response({"id": 14}).ok

    rejected = normalize_upsert_response({"success": False, "message": "Duplicate"})
    assert rejected.rejected and not rejected.ok
    assert rejected.message == "Duplicate"

    assert not normalize_upsert_response(None).ok
    assert not normalize_upsert_response({"message": "nothing"}).ok


def test_subject_result_aliases():
    row = normalize_subject_result({
        "subject_id": 7, "subject_name": "Mathematics", "class_score": "28", "exam_score": 60,
        "total": 88, "grade": "A", "remark": "Excellent", "pass": True,
    })
    assert (row.subject_name, row.class_score, row.total, row.remark, row.passed) == ("Mathematics", 28, 88, "Excellent", True)

    row = normalize_subject_result({"SUBJECT": 9, "CLASSWORK": None, "EXAM": "x", "PASS": "n"})
    assert row.subject_name == "Subject 9"
    assert row.class_score == 0 and row.exam_score == 0
    assert not row.passed


def test_date_part():
    assert date_part("2025-01-07T00:00:00Z") == "2025-01-07"
    assert date_part("2025-01-07") == "2025-01-07"
    assert date_part("Jan 7") == "Jan 7"
    assert date_part(None) == ""
