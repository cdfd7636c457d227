import logging
import math
from typing import Iterable, List, Optional

from app.schemas.academics import GradeBand, GradeBandCreate, GradeResult
from app.services.errors import SaveFailed, ValidationFailed
from app.services.stores import GradingScaleStore

logger = logging.getLogger(__name__)


def round1(value) -> float:
    """Round to one decimal, halves going up (matches the score grid)."""
    return math.floor((float(value or 0) * 10) + 0.5) / 10


def round2(value) -> float:
    """Round to two decimals, halves going up."""
    return math.floor((float(value or 0) * 100) + 0.5) / 100


def ordinal(position) -> str:
    """1 -> "1st", 12 -> "12th", 23 -> "23rd"; anything non-positive -> ""."""
    try:
        n = int(position)
    except (TypeError, ValueError):
        return ""
    if n <= 0:
        return ""
    last, last_two = n % 10, n % 100
    if last == 1 and last_two != 11:
        return f"{n}st"
    if last == 2 and last_two != 12:
        return f"{n}nd"
    if last == 3 and last_two != 13:
        return f"{n}rd"
    return f"{n}th"


def sort_bands(bands: Iterable[GradeBand]) -> List[GradeBand]:
    """Highest band first, so contiguous ranges resolve to the upper grade."""
    return sorted(bands, key=lambda b: b.min_percent or 0, reverse=True)


def resolve_grade(score: float, bands: Iterable[GradeBand]) -> GradeResult:
    """
    Map a score onto the class grading scale.

    Bands are tested in descending ``min_percent`` order with inclusive bounds;
    the first match wins. A score no band covers (including negatives and
    values above 100) yields an empty grade and remark.
    """
    for band in sort_bands(bands):
        if band.min_percent <= score <= band.max_percent:
            return GradeResult(grade=band.grade, remark=band.remark)
    return GradeResult()


def _fmt(value: float) -> str:
    return f"{value:g}"


def validate_band(draft: GradeBandCreate, existing: Iterable[GradeBand]) -> None:
    """
    Check a new or edited band against the class's current scale.

    Raises:
        ValidationFailed: With a user-facing message for the first problem found
    """
    if not draft.grade:
        raise ValidationFailed("Grade is required.")

    low, high = draft.percent_from, draft.percent_to
    if math.isnan(low) or math.isnan(high):
        raise ValidationFailed("Percent From/To must be numbers.")
    if low < 0 or low > 100 or high < 0 or high > 100:
        raise ValidationFailed("Percent values must be within 0 - 100.")
    if low > high:
        raise ValidationFailed("'Percent From' cannot be greater than 'Percent To'.")

    for band in existing:
        if draft.id is not None and band.id == draft.id:
            continue
        if low <= band.max_percent and high >= band.min_percent:
            raise ValidationFailed(
                f"Range overlaps with grade {band.grade} "
                f"({_fmt(band.min_percent)}-{_fmt(band.max_percent)})."
            )


class GradingScaleService:
    """Read and maintain the grade bands of one school's classes."""

    def __init__(self, store: GradingScaleStore):
        self.store = store

    async def list_bands(self, school_id: int, class_id: Optional[int]) -> List[GradeBand]:
        return sort_bands(await self.store.bands(school_id, class_id))

    async def save_band(self, school_id: int, class_id: int, draft: GradeBandCreate) -> List[GradeBand]:
        """Validate, upsert and return the refreshed scale."""
        existing = await self.list_bands(school_id, class_id)
        validate_band(draft, existing)

        result = await self.store.upsert_band(school_id, class_id, draft)
        if result.rejected:
            raise SaveFailed(result.message or "Failed to save.")

        logger.info(
            f"Grade band {draft.grade} ({_fmt(draft.percent_from)}-{_fmt(draft.percent_to)}) "
            f"saved for school {school_id} class {class_id}"
        )
        return await self.list_bands(school_id, class_id)

    async def delete_band(self, school_id: int, class_id: int, band_id: int) -> List[GradeBand]:
        result = await self.store.delete_band(band_id, school_id, class_id)
        if result.rejected:
            raise SaveFailed(result.message or "Delete failed.")

        logger.info(f"Grade band {band_id} deleted for school {school_id} class {class_id}")
        return await self.list_bands(school_id, class_id)
