import asyncio
import csv
import io
import logging
from typing import Dict, Iterable, List, Optional

from app.schemas.academics import ReportScope
from app.schemas.reports import Progress, ReportRow, ReportState, ReviewRecord, SaveAllResult
from app.schemas.students import Student
from app.schemas.users import CurrentUser
from app.services.aggregation import AttendanceAggregator, ScoreAggregator
from app.services.errors import (
    RoleViolation, RowNotFound, SaveFailed, SaveInProgress, UpstreamError, ValidationFailed
)
from app.services.grading import ordinal
from app.services.ranking import competition_rank
from app.services.scope import ScopeGuard
from app.services.stores import Stores

logger = logging.getLogger(__name__)

REOPEN_ROLE_MESSAGE = "Only Head Teacher can set Reopen Date."

EXPORT_COLUMNS = [
    "#", "Student", "Index No", "Overall Score", "Position", "Present Days",
    "Teacher Remarks", "Head Remarks", "Reopen Date",
]


def majority_reopen_date(reviews: Iterable[ReviewRecord]) -> str:
    """Most frequent non-empty reopen date across a class; ties go to the first seen."""
    counts: Dict[str, int] = {}
    for review in reviews:
        value = (review.reopen_date or "").strip()
        if not value:
            continue
        counts[value] = counts.get(value, 0) + 1

    best, best_count = "", 0
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return best


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


class ReviewReconciler:
    """
    Owner of the exam report rows of one workspace.

    ``build`` merges averages, positions, attendance and the saved reviews of
    the active scope into ``ReportRow``s. Edits mark rows dirty; saves upsert
    them one at a time through the review store.
    """

    def __init__(self, stores: Stores, guard: ScopeGuard, concurrency: Optional[int] = None):
        self.stores = stores
        self.guard = guard
        self.scores = ScoreAggregator(stores.marks, concurrency)
        self.attendance = AttendanceAggregator(stores.attendance)

        self.scope: Optional[ReportScope] = None
        self.rows: List[ReportRow] = []
        self.failures: List[int] = []
        self.progress = Progress()
        # Bulk reopen date entered by the head teacher for the whole class
        self.reopen_date = ""

        self._persisted: Dict[int, ReportRow] = {}
        self._save_lock = asyncio.Lock()

        guard.on_change(self._clear)

    def _clear(self):
        self.rows = []
        self.failures = []
        self._persisted = {}
        self.progress = Progress()

    # Building
    async def set_scope(self, scope: ReportScope, user: CurrentUser) -> Optional[List[ReportRow]]:
        """
        Switch the workspace to ``scope`` and rebuild its rows.

        Returns None when another scope change overtook this one.
        """
        key = self.guard.change_scope(scope)
        self.scope = scope

        roster = await self.stores.roster.students(scope.school_id, scope.class_id)
        if not self.guard.is_current(key):
            return None

        return await self.guard.run(key, lambda: self.build(key, scope, roster, user))

    async def refresh(self, user: CurrentUser) -> Optional[List[ReportRow]]:
        if self.scope is None:
            raise ValidationFailed("Select a year, term and class first.")
        return await self.set_scope(self.scope, user)

    async def _load_reviews(self, scope: ReportScope) -> List[ReviewRecord]:
        try:
            return await self.stores.reviews.reviews(scope)
        except UpstreamError as e:
            logger.warning(f"Saved reviews unavailable for class {scope.class_id}: {e}")
            return []

    async def build(
        self,
        key: str,
        scope: ReportScope,
        roster: List[Student],
        user: CurrentUser,
    ) -> Optional[List[ReportRow]]:
        """Compute the report rows for ``scope``; a stale result is dropped without touching state."""
        if not roster:
            if self.guard.is_current(key):
                self.rows = []
            return []

        progress = Progress(total=len(roster))
        if self.guard.is_current(key):
            self.progress = progress

        aggregate = await self.scores.aggregate(scope, roster, progress)
        if not self.guard.is_current(key):
            return None

        positions = competition_rank((a.student_id, a.avg) for a in aggregate.averages)

        reviews, present = await asyncio.gather(
            self._load_reviews(scope),
            self.attendance.aggregate(scope, [s.id for s in roster]),
        )
        if not self.guard.is_current(key):
            return None

        class_reopen = majority_reopen_date(reviews)
        if class_reopen and user.is_head_teacher and not self.reopen_date:
            self.reopen_date = class_reopen

        by_student = {review.student_id: review for review in reviews}
        rows = []
        for average in aggregate.averages:
            review = by_student.get(average.student_id)
            present_days = present.get(average.student_id)
            if present_days is None:
                present_days = review.attendance if review else 0
            rows.append(ReportRow(
                id=review.id if review else None,
                student_id=average.student_id,
                name=average.name,
                index_no=average.index_no,
                avg=average.avg,
                position=positions.get(average.student_id),
                present_days=present_days,
                teacher_remarks=review.teacher_remarks if review else "",
                head_remarks=review.head_remarks if review else "",
                reopen_date=review.reopen_date if review else "",
            ))

        if not self.guard.is_current(key):
            return None

        self.rows = rows
        self.failures = aggregate.failures
        self._persisted = {row.student_id: row.model_copy() for row in rows}
        logger.info(
            f"Report built for scope {key}: {len(rows)} students, "
            f"{len(aggregate.failures)} mark fetch failures"
        )
        return rows

    # Editing
    def get_row(self, student_id: int) -> ReportRow:
        for row in self.rows:
            if row.student_id == student_id:
                return row
        raise RowNotFound(f"Student {student_id} is not in this report.")

    def edit_row(self, student_id: int, field: str, value: str, user: CurrentUser) -> ReportRow:
        if field == "teacher_remarks":
            if not user.is_teacher:
                raise RoleViolation("Only the class teacher can edit teacher remarks.")
        elif field == "head_remarks":
            if not user.is_head_teacher:
                raise RoleViolation("Only Head Teacher can edit head teacher remarks.")
        elif field == "reopen_date":
            if not user.is_head_teacher:
                raise RoleViolation(REOPEN_ROLE_MESSAGE)
        else:
            raise ValidationFailed(f"Field '{field}' cannot be edited.")

        row = self.get_row(student_id)
        setattr(row, field, value if value is not None else "")
        row.dirty = True
        row.saved_ok = False
        return row

    def set_bulk_reopen_date(self, reopen_date: str, user: CurrentUser) -> str:
        if not user.is_head_teacher:
            raise RoleViolation(REOPEN_ROLE_MESSAGE)
        self.reopen_date = (reopen_date or "").strip()
        return self.reopen_date

    # Saving
    async def save_row(self, student_id: int, user: CurrentUser, reopen_only: bool = False) -> ReportRow:
        """
        Upsert one review row.

        In ``reopen_only`` mode the bulk reopen date is written and every other
        field is sent as last saved, leaving the row's pending edits pending.
        Refused while a bulk save is running, so a first-time row is never
        created twice.
        """
        if reopen_only and not user.is_head_teacher:
            raise RoleViolation(REOPEN_ROLE_MESSAGE)
        if self.scope is None:
            raise ValidationFailed("Select a year, term and class first.")
        if self._save_lock.locked():
            raise SaveInProgress("A save is already in progress.")

        async with self._save_lock:
            row = self.get_row(student_id)
            return await self._save(row, self.scope, self.guard.current_key, user, reopen_only)

    async def _save(
        self,
        row: ReportRow,
        scope: ReportScope,
        key: str,
        user: CurrentUser,
        reopen_only: bool = False,
    ) -> ReportRow:
        if reopen_only and not user.is_head_teacher:
            raise RoleViolation(REOPEN_ROLE_MESSAGE)

        student_id = row.student_id
        source = self._persisted.get(student_id, row) if reopen_only else row
        reopen = (self.reopen_date if reopen_only else row.reopen_date) or ""

        params = {
            "p_id": row.id if row.id is not None else "",
            "p_school_id": scope.school_id,
            "p_year_id": scope.year_id,
            "p_term_id": scope.term_id,
            "p_class_id": scope.class_id,
            "p_student_id": student_id,
            "p_teacher_remarks": source.teacher_remarks or "",
            "p_head_remarks": source.head_remarks or "",
            "p_overall_score": str(row.avg),
            "p_overall_position": str(row.position) if row.position is not None else "",
            "p_attendance": str(row.present_days),
            "p_reopen_date": reopen.strip(),
        }

        try:
            result = await self.stores.reviews.upsert_review(params)
        except UpstreamError as e:
            raise SaveFailed(str(e), student_id)

        if not result.ok:
            logger.error(f"Review save rejected for student {student_id}: {result.message}")
            raise SaveFailed(result.message or "Save failed", student_id)

        # The scope moved on while saving; the row no longer belongs to the visible sheet
        if not self.guard.is_current(key):
            return row

        if result.id is not None:
            row.id = result.id
        row.reopen_date = params["p_reopen_date"] or row.reopen_date
        row.saved_ok = True

        persisted = self._persisted.get(student_id) or row.model_copy()
        persisted.id = row.id
        persisted.reopen_date = row.reopen_date
        if not reopen_only:
            row.dirty = False
            persisted = row.model_copy()
        self._persisted[student_id] = persisted

        return row

    async def _save_each(self, rows: List[ReportRow], user: CurrentUser, reopen_only: bool) -> SaveAllResult:
        """Save ``rows`` one after the other for the scope active when the loop started."""
        scope = self.scope
        key = self.guard.current_key
        saved = 0
        for row in rows:
            if not self.guard.is_current(key):
                logger.warning(f"Scope changed from {key} during save; {saved} row(s) were saved")
                return SaveAllResult(saved=saved, message="Report scope changed during save.")
            try:
                await self._save(row, scope, key, user, reopen_only)
            except SaveFailed as e:
                prefix = "Failed applying reopen date" if reopen_only else "Save failed"
                return SaveAllResult(
                    saved=saved,
                    failed_student_id=row.student_id,
                    message=f"{prefix}: {e.message}",
                )
            saved += 1
        return SaveAllResult(saved=saved)

    async def save_all(self, user: CurrentUser) -> SaveAllResult:
        """Save every dirty row in order, stopping at the first failure."""
        if self._save_lock.locked():
            raise SaveInProgress("A save is already in progress.")

        async with self._save_lock:
            dirty = [row for row in self.rows if row.dirty]
            if not dirty:
                return SaveAllResult(message="No changes to save.")

            result = await self._save_each(dirty, user, reopen_only=False)
            if result.message:
                return result

            saved = result.saved
            logger.info(f"Saved {saved} review row{_plural(saved)} for scope {self.guard.current_key}")
            return SaveAllResult(saved=saved, message=f"Saved {saved} student{_plural(saved)}.")

    async def apply_reopen_to_all(self, user: CurrentUser) -> SaveAllResult:
        """Write the bulk reopen date onto every row of the class."""
        if not user.is_head_teacher:
            raise RoleViolation(REOPEN_ROLE_MESSAGE)
        if not self.reopen_date:
            raise ValidationFailed("Pick a Reopen Date first.")
        if self._save_lock.locked():
            raise SaveInProgress("A save is already in progress.")

        async with self._save_lock:
            result = await self._save_each(list(self.rows), user, reopen_only=True)
            if result.message:
                return result

            applied = result.saved
            return SaveAllResult(
                saved=applied,
                message=f"Reopen date applied to {applied} student{_plural(applied)}.",
            )

    # Views
    def filtered_rows(self, query: str = "", dirty_only: bool = False) -> List[ReportRow]:
        rows = [row for row in self.rows if row.dirty] if dirty_only else list(self.rows)
        needle = (query or "").strip().lower()
        if not needle:
            return rows
        return [
            row for row in rows
            if needle in (row.name or "").lower() or needle in str(row.index_no or "").lower()
        ]

    def state(self) -> ReportState:
        return ReportState(
            scope_key=self.guard.current_key,
            loading=self.guard.busy,
            progress=self.progress,
            reopen_date=self.reopen_date,
            unsaved=sum(1 for row in self.rows if row.dirty),
            failures=self.failures,
            rows=self.rows,
        )

    def export_csv(self, user: CurrentUser, query: str = "", dirty_only: bool = False) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for number, row in enumerate(self.filtered_rows(query, dirty_only), start=1):
            reopen = (self.reopen_date or row.reopen_date) if user.is_head_teacher else ""
            writer.writerow([
                number,
                row.name,
                row.index_no,
                row.avg,
                ordinal(row.position),
                row.present_days,
                row.teacher_remarks,
                row.head_remarks,
                reopen,
            ])
        return buffer.getvalue()
