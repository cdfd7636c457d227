import asyncio
import logging
from typing import List, Optional

from app.schemas.academics import GradeBand, MarkRecord, MarkRow, ScoreScope, ScoreSheet
from app.schemas.reports import SaveAllResult
from app.schemas.students import Student
from app.services.errors import RowNotFound, SaveFailed, SaveInProgress, UpstreamError, ValidationFailed
from app.services.grading import resolve_grade, round1, sort_bands
from app.services.ranking import subject_positions
from app.services.scope import ScopeGuard
from app.services.stores import Stores

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("class_score", "exam_score")


def apply_positions(rows: List[MarkRow]) -> List[MarkRow]:
    positions = subject_positions((row.student_id, row.total) for row in rows)
    for row in rows:
        row.position = positions.get(row.student_id, "")
    return rows


def _row_from_mark(mark: MarkRecord, name: str, index_no: str, bands: List[GradeBand]) -> MarkRow:
    total = round1((mark.class_score or 0) + (mark.exam_score or 0))
    computed = resolve_grade(total, bands)
    return MarkRow(
        student_id=mark.student_id,
        name=name,
        index_no=mark.roll_no or index_no,
        class_score=mark.class_score,
        exam_score=mark.exam_score,
        total=total,
        grade=mark.grade or computed.grade,
        remark=mark.remark or computed.remark,
        position=mark.position,
        mark_id=mark.id,
        exists=True,
    )


def merge_sheet(roster: List[Student], marks: List[MarkRecord], bands: List[GradeBand]) -> List[MarkRow]:
    """One row per pupil on the roster, plus rows for marks of pupils no longer on it."""
    marks_by_student = {mark.student_id: mark for mark in marks}
    on_roster = set()
    rows = []
    for student in roster:
        on_roster.add(student.id)
        mark = marks_by_student.get(student.id)
        if mark is not None:
            rows.append(_row_from_mark(mark, student.name, student.index_no, bands))
        else:
            rows.append(MarkRow(student_id=student.id, name=student.name, index_no=student.index_no))

    for mark in marks:
        if mark.student_id not in on_roster:
            rows.append(_row_from_mark(mark, f"Student {mark.student_id}", "", bands))

    return apply_positions(rows)


class ScoreSheetService:
    """Per-subject score entry for one class, term and year."""

    def __init__(self, stores: Stores, guard: Optional[ScopeGuard] = None):
        self.stores = stores
        self.guard = guard or ScopeGuard()
        self.scope: Optional[ScoreScope] = None
        self.rows: List[MarkRow] = []
        self.bands: List[GradeBand] = []
        self._save_lock = asyncio.Lock()

        self.guard.on_change(self._clear)

    def _clear(self):
        self.rows = []
        self.bands = []

    async def load(self, scope: ScoreScope) -> Optional[List[MarkRow]]:
        key = self.guard.change_scope(scope)
        self.scope = scope
        return await self.guard.run(key, lambda: self._load(key, scope))

    async def _roster(self, scope: ScoreScope) -> List[Student]:
        try:
            return await self.stores.roster.students(scope.school_id, scope.class_id)
        except UpstreamError as e:
            logger.warning(f"Roster unavailable for class {scope.class_id}: {e}")
            return []

    async def _bands(self, scope: ScoreScope) -> List[GradeBand]:
        try:
            return sort_bands(await self.stores.scales.bands(scope.school_id, scope.class_id))
        except UpstreamError as e:
            logger.warning(f"Grading scale unavailable for class {scope.class_id}: {e}")
            return []

    async def _load(self, key: str, scope: ScoreScope) -> Optional[List[MarkRow]]:
        roster, bands, marks = await asyncio.gather(
            self._roster(scope),
            self._bands(scope),
            self.stores.marks.marks(scope),
        )
        if not self.guard.is_current(key):
            return None

        self.bands = bands
        self.rows = merge_sheet(roster, marks, bands)
        return self.rows

    def get_row(self, student_id: int) -> MarkRow:
        for row in self.rows:
            if row.student_id == student_id:
                return row
        raise RowNotFound(f"Student {student_id} is not on this score sheet.")

    def update_cell(self, student_id: int, field: str, value) -> MarkRow:
        """Edit a score, then recompute the row's total and grade and every position."""
        if field == "index_no":
            raise ValidationFailed("Index No is read-only.")
        if field not in SCORE_FIELDS:
            raise ValidationFailed(f"Field '{field}' cannot be edited.")

        if value is None or value == "":
            score = None
        else:
            try:
                score = float(value)
            except (TypeError, ValueError):
                raise ValidationFailed("Scores must be numbers.")

        row = self.get_row(student_id)
        setattr(row, field, score)
        row.total = round1((row.class_score or 0) + (row.exam_score or 0))
        result = resolve_grade(row.total, self.bands)
        row.grade = result.grade
        row.remark = result.remark
        row.dirty = True
        row.saved_ok = False

        apply_positions(self.rows)
        return row

    async def save_row(self, student_id: int) -> MarkRow:
        """Save one student's mark; refused while a bulk save is running."""
        if self.scope is None:
            raise ValidationFailed("Select a class, subject, year and term first.")
        if self._save_lock.locked():
            raise SaveInProgress("A save is already in progress.")

        async with self._save_lock:
            row = self.get_row(student_id)
            return await self._save(row, self.scope, self.guard.current_key)

    async def _save(self, row: MarkRow, scope: ScoreScope, key: str) -> MarkRow:
        student_id = row.student_id
        params = {
            "p_school_id": scope.school_id,
            "p_academic_year": scope.year_id,
            "p_academic_term": scope.term_id,
            "p_class": scope.class_id,
            "p_student": student_id,
            "p_roll_no": row.index_no,
            "p_subject": scope.subject_id,
            "p_class_score": row.class_score or 0,
            "p_exam_score": row.exam_score or 0,
            "p_total": row.total or None,
            "p_grade": row.grade,
            "p_position": row.position,
            "p_meaning": row.remark,
        }

        try:
            result = await self.stores.marks.upsert_mark(params)
        except UpstreamError as e:
            raise SaveFailed(str(e), student_id)
        if result.rejected:
            raise SaveFailed(result.message or "Save failed", student_id)

        if self.guard.is_current(key):
            if result.id is not None:
                row.mark_id = result.id
            row.exists = True
            row.dirty = False
            row.saved_ok = True
        return row

    async def save_all(self) -> SaveAllResult:
        if self._save_lock.locked():
            raise SaveInProgress("A save is already in progress.")

        async with self._save_lock:
            dirty = [row for row in self.rows if row.dirty]
            if not dirty:
                return SaveAllResult(message="No changes to save.")

            apply_positions(self.rows)
            scope = self.scope
            key = self.guard.current_key
            saved = 0
            for row in dirty:
                if not self.guard.is_current(key):
                    logger.warning(f"Score sheet changed from {key} during save; {saved} row(s) were saved")
                    return SaveAllResult(saved=saved, message="Score sheet changed during save.")
                try:
                    await self._save(row, scope, key)
                except SaveFailed as e:
                    return SaveAllResult(
                        saved=saved,
                        failed_student_id=row.student_id,
                        message=f"Save failed: {e.message}",
                    )
                saved += 1

            logger.info(f"Saved {saved} mark row(s) for scope {key}")
            if self.guard.is_current(key):
                await self.load(scope)
            return SaveAllResult(
                saved=saved,
                message=f"Saved {saved} student{'' if saved == 1 else 's'}.",
            )

    async def remove_row(self, student_id: int) -> None:
        """Delete a stored mark (if any) and drop the row from the sheet."""
        row = self.get_row(student_id)
        if row.exists and row.mark_id is not None:
            try:
                result = await self.stores.marks.delete_mark(row.mark_id, self.scope.school_id)
            except UpstreamError as e:
                raise SaveFailed(f"Delete failed: {e}", student_id)
            if result.rejected:
                raise SaveFailed(result.message or "Delete failed", student_id)
            logger.info(f"Deleted mark {row.mark_id} for student {student_id}")

        self.rows = [r for r in self.rows if r.student_id != student_id]
        apply_positions(self.rows)

    def sheet(self) -> ScoreSheet:
        return ScoreSheet(
            scope_key=self.guard.current_key,
            rows=self.rows,
            bands=self.bands,
            unsaved=sum(1 for row in self.rows if row.dirty),
        )
