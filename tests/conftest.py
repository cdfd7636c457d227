import pytest

from app.schemas.academics import GradeBand, ReportScope, ScoreScope
from app.schemas.students import Student
from app.schemas.users import CurrentUser


@pytest.fixture()
def scope():
    return ReportScope(school_id=1, year_id=2024, term_id=1, class_id=10)


@pytest.fixture()
def score_scope():
    return ScoreScope(school_id=1, year_id=2024, term_id=1, class_id=10, subject_id=7)


@pytest.fixture()
def roster():
    return [
        Student(id=1, name="Ama Mensah", index_no="A001", class_id=10),
        Student(id=2, name="Kofi Boateng", index_no="A002", class_id=10),
        Student(id=3, name="Esi Owusu", index_no="A003", class_id=10),
    ]


@pytest.fixture()
def bands():
    return [
        GradeBand(id=1, grade="C", min_percent=70, max_percent=79, remark="Good"),
        GradeBand(id=2, grade="A", min_percent=90, max_percent=100, remark="Excellent"),
        GradeBand(id=3, grade="B", min_percent=80, max_percent=89, remark="Very Good"),
    ]


@pytest.fixture()
def head_teacher():
    return CurrentUser(user_id=5, school_id=1, role="headteacher")


@pytest.fixture()
def teacher():
    return CurrentUser(user_id=6, school_id=1, role="teacher")
