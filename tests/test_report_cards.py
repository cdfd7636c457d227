import asyncio

import pytest

from app.schemas.reports import ReviewRecord, SubjectResult
from app.services.errors import RowNotFound
from app.services.report_cards import ReportCardService, build_report_card

from tests.fakes import FakeMarksStore, FakeReviewStore, FakeRosterStore, FakeScaleStore, FakeStores


SUBJECTS = [
    SubjectResult(subject_id=7, subject_name="Mathematics", class_score=30, exam_score=55, total=85, grade="A", passed=True),
    SubjectResult(subject_id=8, subject_name="English", class_score=20, exam_score=40.5, total=60.5, grade="B", passed=True),
    SubjectResult(subject_id=9, subject_name="Science", class_score=10, exam_score=25, total=35, grade="F", passed=False),
]


def test_card_summary_uses_computed_average_without_saved_score(scope, roster):
    card = build_report_card(roster[0], scope, SUBJECTS, None, [])

    assert card.total_sum == 180.5
    assert card.average == 60.17
    assert card.overall_score == 60.17
    assert (card.passes, card.fails) == (2, 1)
    assert card.overall_position is None and card.attendance is None
    assert card.scope_key == "1|2024|1|10"


def test_card_prefers_saved_review(scope, roster):
    review = ReviewRecord(
        id=4, student_id=1, teacher_remarks="Keep it up", head_remarks="Promising",
        attendance=58, overall_score=72.5, overall_position=2, reopen_date="2025-01-07T00:00:00Z",
    )
    card = build_report_card(roster[0], scope, SUBJECTS, review, [])

    assert card.overall_score == 72.5
    assert card.overall_position == 2
    assert card.attendance == 58
    assert card.reopen_date == "2025-01-07"
    assert card.teacher_remarks == "Keep it up" and card.head_remarks == "Promising"


def test_card_without_subjects(scope, roster):
    card = build_report_card(roster[1], scope, [], None, [])
    assert card.average == 0 and card.passes == 0 and card.fails == 0


def test_service_assembles_card(scope, roster, bands):
    marks = FakeMarksStore()
    marks.subject_rows[2] = SUBJECTS[:2]
    stores = FakeStores(
        roster=FakeRosterStore({10: roster}),
        marks=marks,
        reviews=FakeReviewStore([ReviewRecord(id=9, student_id=2, overall_position=1)]),
        scales=FakeScaleStore(bands),
    )

    card = asyncio.run(ReportCardService(stores).student_report(scope, 2))

    assert card.name == "Kofi Boateng" and card.index_no == "A002"
    assert [s.subject_name for s in card.subjects] == ["Mathematics", "English"]
    assert card.overall_position == 1
    assert [b.grade for b in card.bands] == ["A", "B", "C"]
    assert marks.pass_marks == [50]


def test_service_passes_explicit_pass_mark(scope, roster):
    marks = FakeMarksStore()
    stores = FakeStores(roster=FakeRosterStore({10: roster}), marks=marks)
    asyncio.run(ReportCardService(stores, pass_mark=40).student_report(scope, 1, pass_mark=45))
    assert marks.pass_marks == [45]


def test_service_unknown_student(scope, roster):
    stores = FakeStores(roster=FakeRosterStore({10: roster}))
    with pytest.raises(RowNotFound):
        asyncio.run(ReportCardService(stores).student_report(scope, 99))
