import asyncio
import logging
from typing import List, Optional

from app.schemas.academics import AcademicLookups, ClassOption, LovEntry, SubjectAssignment
from app.schemas.users import CurrentUser
from app.services.errors import RoleViolation
from app.services.stores import LookupStore

logger = logging.getLogger(__name__)


def default_selection(entries: List[LovEntry]) -> Optional[int]:
    """The entry flagged CURRENT, else the first one."""
    for entry in entries:
        if entry.is_current:
            return entry.id
    return entries[0].id if entries else None


class LookupService:
    """Class, year, term and subject choices available to the current user."""

    def __init__(self, store: LookupStore):
        self.store = store

    async def visible_classes(self, user: CurrentUser) -> List[ClassOption]:
        # Head teacher, admin and owner see every class; everyone else only the classes they teach
        if user.sees_all_classes:
            return await self.store.school_classes(user.school_id)
        return await self.store.class_teacher_classes(user.user_id)

    async def academic_lookups(self, user: CurrentUser) -> AcademicLookups:
        classes, years, terms = await asyncio.gather(
            self.visible_classes(user),
            self.store.academic_years(user.school_id),
            self.store.terms(user.school_id),
        )
        return AcademicLookups(
            classes=classes,
            years=years,
            terms=terms,
            default_class_id=classes[0].id if classes else None,
            default_year_id=default_selection(years),
            default_term_id=default_selection(terms),
        )

    async def subject_assignments(self, user: CurrentUser) -> List[SubjectAssignment]:
        return await self.store.subject_assignments(user.school_id, user.user_id)

    async def ensure_class_access(self, user: CurrentUser, class_id: int) -> None:
        if user.sees_all_classes:
            return
        classes = await self.visible_classes(user)
        if not any(c.id == class_id for c in classes):
            logger.warning(f"User {user.user_id} ({user.role}) denied access to class {class_id}")
            raise RoleViolation("Not authorized to view reports for this class.")

    async def ensure_subject_access(self, user: CurrentUser, class_id: int, subject_id: int) -> None:
        if user.is_head_teacher:
            return
        assignments = await self.subject_assignments(user)
        if not any(a.class_id == class_id and a.subject_id == subject_id for a in assignments):
            logger.warning(
                f"User {user.user_id} ({user.role}) denied score entry for class {class_id} subject {subject_id}"
            )
            raise RoleViolation("Not assigned to this class and subject.")
