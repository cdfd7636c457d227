import asyncio

import httpx
import pytest

from app.schemas.academics import GradeBandCreate, ReportScope
from app.services.errors import UpstreamError
from app.services.ords import OrdsClient
from app.services.stores import Stores

BASE_URL = "http://ords.test/ords/schools"


def make_client(handler, token="secret"):
    return OrdsClient(base_url=BASE_URL + "/", token=token, timeout=5, transport=httpx.MockTransport(handler))


def test_url_and_params_are_sent():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"items": [{"ID": 1}]})

    client = make_client(handler)
    rows = asyncio.run(client.get_array("/student/get/students", {"p_school_id": 1, "p_class_id": None}))

    assert rows == [{"ID": 1}]
    request = seen[0]
    assert str(request.url).startswith(BASE_URL + "/student/get/students/")
    assert request.url.params["p_school_id"] == "1"
    assert "p_class_id" not in request.url.params
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.parametrize("body,expected", [
    ("", []),
    ("not json", []),
    ('[{"a": 1}]', [{"a": 1}]),
    ('{"items": [{"a": 2}]}', [{"a": 2}]),
    ('{"count": 0}', []),
])
def test_get_array_tolerates_odd_bodies(body, expected):
    client = make_client(lambda request: httpx.Response(200, text=body))
    assert asyncio.run(client.get_array("exams/review/list")) == expected


def test_http_error_raises_upstream_error():
    client = make_client(lambda request: httpx.Response(500, text="ORA-06502"))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(client.get_array("exams/review/list"))
    assert exc.value.status_code == 500


def test_connection_error_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(UpstreamError):
        asyncio.run(client.get_object("exams/review/upsert"))


def test_roster_store_keeps_only_class_students():
    def handler(request):
        return httpx.Response(200, json={"items": [
            {"STUDENT_ID": 1, "FULL_NAME": "Ama", "CLASS_ID": 10},
            {"STUDENT_ID": 2, "FULL_NAME": "Kofi", "CLASS_ID": 11},
            {"STUDENT_ID": 3, "FULL_NAME": "Esi"},
        ]})

    stores = Stores(make_client(handler))
    students = asyncio.run(stores.roster.students(1, 10))
    assert [s.id for s in students] == [1]


def test_marks_upsert_drops_empty_params():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"status": "success", "id": 44})

    stores = Stores(make_client(handler))
    result = asyncio.run(stores.marks.upsert_mark({"p_student": 3, "p_total": None, "p_grade": "", "p_position": "2"}))

    assert result.ok and result.id == 44
    params = seen[0].url.params
    assert params["p_student"] == "3" and params["p_position"] == "2"
    assert "p_total" not in params and "p_grade" not in params


def test_scale_upsert_handler_and_params():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": False, "message": "Duplicate grade"})

    stores = Stores(make_client(handler))
    band = GradeBandCreate(grade="B2", percent_from=70, percent_to=79, remarks="Very good")
    result = asyncio.run(stores.scales.upsert_band(1, 10, band))

    assert result.rejected and result.message == "Duplicate grade"
    request = seen[0]
    assert request.url.path == "/ords/schools/exams/scheme/upsert/"
    assert request.url.params["p_grade"] == "B2"
    assert request.url.params["p_class"] == "10"
    assert "p_id" not in request.url.params


def test_review_upsert_without_body_is_not_ok():
    stores = Stores(make_client(lambda request: httpx.Response(200, text="")))
    result = asyncio.run(stores.reviews.upsert_review({"p_id": "", "p_student_id": 1}))
    assert not result.ok and not result.rejected


def test_student_report_sends_pass_mark():
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return httpx.Response(200, json={"items": [
            {"SUBJECT_ID": 7, "SUBJECT_NAME": "Mathematics", "CLASSWORK": 30, "EXAM": 55, "TOTAL": 85, "GRADE": "A", "MEANING": "Excellent", "PASS": "Y"},
            {"SUBJECT": 8, "TOTAL": "41", "PASS": "N"},
        ]})

    scope = ReportScope(school_id=1, year_id=2024, term_id=1, class_id=10)
    stores = Stores(make_client(handler))
    subjects = asyncio.run(stores.marks.student_report(scope, 3, pass_mark=45))

    assert seen[0]["p_student_id"] == "3" and seen[0]["p_pass_mark"] == "45"
    assert subjects[0].remark == "Excellent" and subjects[0].passed
    assert subjects[1].subject_name == "Subject 8" and subjects[1].total == 41 and not subjects[1].passed

    totals = asyncio.run(stores.marks.student_report_totals(scope, 3))
    assert totals == [85, 41]
    assert "p_pass_mark" not in seen[1]


@pytest.mark.parametrize("body,expected", [
    ("", None),
    ('{"ID": 12, "HEAD_REMARKS": "Good", "OVERALL_SCORE": "71.5"}', (12, 4, "Good", 71.5)),
])
def test_student_review_single_object(body, expected):
    def handler(request):
        return httpx.Response(200, text=body)

    scope = ReportScope(school_id=1, year_id=2024, term_id=1, class_id=10)
    review = asyncio.run(Stores(make_client(handler)).reviews.student_review(scope, 4))
    if expected is None:
        assert review is None
    else:
        assert (review.id, review.student_id, review.head_remarks, review.overall_score) == expected
