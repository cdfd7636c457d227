import asyncio

import pytest

from app.schemas.academics import ClassOption, LovEntry, SubjectAssignment
from app.schemas.users import CurrentUser
from app.services.errors import RoleViolation
from app.services.lookups import LookupService, default_selection


class FakeLookupStore:
    async def school_classes(self, school_id):
        return [ClassOption(id=10, name="JHS 1"), ClassOption(id=11, name="JHS 2")]

    async def class_teacher_classes(self, user_id):
        return [ClassOption(id=11, name="JHS 2")]

    async def subject_assignments(self, school_id, user_id):
        return [SubjectAssignment(class_id=11, subject_id=7)]

    async def academic_years(self, school_id):
        return [LovEntry(id=1, name="2023/2024"), LovEntry(id=2, name="2024/2025", status="Current")]

    async def terms(self, school_id):
        return [LovEntry(id=3, name="Term 1"), LovEntry(id=4, name="Term 2")]


def test_default_selection():
    assert default_selection([LovEntry(id=1), LovEntry(id=2, status="CURRENT")]) == 2
    assert default_selection([LovEntry(id=5), LovEntry(id=6)]) == 5
    assert default_selection([]) is None


@pytest.mark.parametrize("role,expected", [
    ("headteacher", [10, 11]),
    ("admin", [10, 11]),
    ("owner", [10, 11]),
    ("teacher", [11]),
])
def test_visible_classes_by_role(role, expected):
    user = CurrentUser(user_id=6, school_id=1, role=role)
    lookups = asyncio.run(LookupService(FakeLookupStore()).academic_lookups(user))
    assert [c.id for c in lookups.classes] == expected
    assert lookups.default_class_id == expected[0]
    assert lookups.default_year_id == 2
    assert lookups.default_term_id == 3


def test_teacher_access_checks(teacher):
    service = LookupService(FakeLookupStore())
    asyncio.run(service.ensure_class_access(teacher, 11))
    asyncio.run(service.ensure_subject_access(teacher, 11, 7))

    with pytest.raises(RoleViolation):
        asyncio.run(service.ensure_class_access(teacher, 10))
    with pytest.raises(RoleViolation):
        asyncio.run(service.ensure_subject_access(teacher, 11, 8))


def test_head_teacher_bypasses_subject_assignments(head_teacher):
    service = LookupService(FakeLookupStore())
    asyncio.run(service.ensure_subject_access(head_teacher, 10, 99))
