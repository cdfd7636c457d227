import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from app.config import settings
from app.schemas.academics import ReportScope
from app.schemas.reports import Progress, StudentAverage
from app.schemas.students import Student
from app.services.grading import round2
from app.services.stores import AttendanceStore, MarksStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Failed:
    """Placeholder left in a result slot whose mapper raised."""

    def __init__(self, error: BaseException):
        self.error = error

    def __repr__(self):
        return f"Failed({self.error!r})"


async def map_with_concurrency(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T], Awaitable[R]],
    on_settled: Optional[Callable[[], None]] = None,
) -> List[object]:
    """
    Run ``mapper`` over ``items`` with at most ``limit`` calls in flight.

    Results keep the input order. A mapper exception does not stop the others;
    its slot holds a ``Failed`` wrapper instead. ``on_settled`` is called once
    per item as soon as it finishes either way. Cancelling the caller cancels
    every pending call.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> object:
        async with semaphore:
            try:
                return await mapper(item)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                return Failed(e)
            finally:
                if on_settled is not None:
                    on_settled()

    return list(await asyncio.gather(*(run(item) for item in items)))


class AggregateResult:
    def __init__(self, averages: List[StudentAverage], failures: List[int]):
        self.averages = averages
        self.failures = failures


class ScoreAggregator:
    """Per-student average of subject totals for one report scope."""

    def __init__(self, store: MarksStore, concurrency: Optional[int] = None):
        self.store = store
        self.concurrency = concurrency or settings.MARKS_FETCH_CONCURRENCY

    async def aggregate(
        self,
        scope: ReportScope,
        students: Sequence[Student],
        progress: Optional[Progress] = None,
    ) -> AggregateResult:
        if progress is not None:
            progress.done = 0
            progress.total = len(students)

        def settled():
            if progress is not None:
                progress.done = min(progress.done + 1, progress.total)

        async def average_for(student: Student) -> float:
            totals = await self.store.student_report_totals(scope, student.id)
            if not totals:
                return 0.0
            return round2(sum(totals) / len(totals))

        results = await map_with_concurrency(students, self.concurrency, average_for, settled)

        averages = []
        failures = []
        for student, result in zip(students, results):
            if isinstance(result, Failed):
                logger.warning(
                    f"Marks for student {student.id} could not be loaded "
                    f"(scope {scope.school_id}/{scope.year_id}/{scope.term_id}/{scope.class_id}): {result.error}"
                )
                failures.append(student.id)
                avg = 0.0
            else:
                avg = result
            averages.append(
                StudentAverage(student_id=student.id, name=student.name, index_no=student.index_no, avg=avg)
            )

        return AggregateResult(averages, failures)


class AttendanceAggregator:
    """Present-day counts for one report scope, best effort."""

    def __init__(self, store: AttendanceStore):
        self.store = store

    async def aggregate(self, scope: ReportScope, roster_ids: Iterable[int]) -> Dict[int, int]:
        try:
            rows = await self.store.summary(scope)
        except Exception as e:
            logger.warning(f"Attendance summary unavailable for class {scope.class_id}: {e}")
            return {}

        # Summaries are not always class-scoped; without a class column the roster is the only filter
        has_class = any(row.class_id is not None for row in rows)
        if has_class:
            kept = [row for row in rows if row.class_id == scope.class_id]
        else:
            known = set(roster_ids)
            kept = [row for row in rows if row.student_id in known]

        return {row.student_id: row.present for row in kept}
