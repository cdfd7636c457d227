import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from fastapi.responses import Response

from app.schemas.academics import ReportScope, ScopeSelection
from app.schemas.reports import ReopenDateRequest, ReportRow, ReportState, RowEdit, SaveAllResult, StudentReport
from app.middleware.authentication import get_workspace
from app.services.errors import UpstreamError
from app.services.workspace import Workspace

logger = logging.getLogger(__name__)

router = APIRouter()

def _state(workspace: Workspace, q: Optional[str] = None, dirty_only: bool = False) -> ReportState:
    state = workspace.reports.state()
    if q or dirty_only:
        state.rows = workspace.reports.filtered_rows(q or "", dirty_only)
    return state

# Report scope endpoints
@router.put("/reports/scope", response_model=ReportState)
async def select_report_scope(
    selection: ScopeSelection,
    workspace: Workspace = Depends(get_workspace),
):
    """
    Select the year, term and class of the exam report and compute its rows.

    Selecting a new scope discards whatever was still being computed for the
    previous one.
    """
    user = workspace.user
    await workspace.lookups.ensure_class_access(user, selection.class_id)

    scope = ReportScope(school_id=user.school_id, **selection.model_dump())
    try:
        await workspace.reports.set_scope(scope, user)
    except UpstreamError as e:
        logger.error(f"Report build failed for class {scope.class_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to compute report: {str(e)}"
        )

    return workspace.reports.state()

@router.post("/reports/refresh", response_model=ReportState)
async def refresh_report(workspace: Workspace = Depends(get_workspace)):
    """
    Recompute the rows of the current scope.
    """
    try:
        await workspace.reports.refresh(workspace.user)
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to compute report: {str(e)}"
        )
    return workspace.reports.state()

@router.get("/reports", response_model=ReportState)
async def get_report(
    q: Optional[str] = Query(None, description="Filter by student name or index number"),
    dirty_only: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Get the current report rows, progress and unsaved count.
    """
    return _state(workspace, q, dirty_only)

# Row endpoints
@router.patch("/reports/rows/{student_id}", response_model=ReportRow)
async def edit_report_row(
    edit: RowEdit,
    student_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Edit a remark or the reopen date of one student's row.
    """
    return workspace.reports.edit_row(student_id, edit.field, edit.value, workspace.user)

@router.post("/reports/rows/{student_id}/save", response_model=ReportRow)
async def save_report_row(
    student_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Save one student's review row.
    """
    return await workspace.reports.save_row(student_id, workspace.user)

@router.post("/reports/save-all", response_model=SaveAllResult)
async def save_all_report_rows(workspace: Workspace = Depends(get_workspace)):
    """
    Save every row with unsaved edits, one after the other.
    """
    return await workspace.reports.save_all(workspace.user)

# Reopen date endpoints
@router.put("/reports/reopen-date")
async def set_reopen_date(
    request: ReopenDateRequest,
    workspace: Workspace = Depends(get_workspace),
):
    """
    Set the class reopen date that "apply to all" will write.
    """
    reopen_date = workspace.reports.set_bulk_reopen_date(request.reopen_date, workspace.user)
    return {"reopen_date": reopen_date}

@router.post("/reports/reopen-date/apply", response_model=SaveAllResult)
async def apply_reopen_date(workspace: Workspace = Depends(get_workspace)):
    """
    Write the class reopen date onto every student's review.
    """
    return await workspace.reports.apply_reopen_to_all(workspace.user)

@router.get("/reports/export")
async def export_report(
    q: Optional[str] = Query(None),
    dirty_only: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Export the current view of the report as CSV.
    """
    scope = workspace.reports.scope
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Select a year, term and class first."
        )

    content = workspace.reports.export_csv(workspace.user, q or "", dirty_only)
    filename = f"ExamReport_{scope.class_id}_{scope.term_id}_{scope.year_id}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

# Report card endpoint
@router.get("/reports/students/{student_id}", response_model=StudentReport)
async def get_student_report(
    student_id: int = Path(..., gt=0),
    year_id: int = Query(..., gt=0),
    term_id: int = Query(..., gt=0),
    class_id: int = Query(..., gt=0),
    pass_mark: Optional[float] = Query(None, ge=0, le=100),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Get the printable report card of one student: subject lines, totals,
    pass/fail counts, saved remarks and the class grading scale.
    """
    user = workspace.user
    await workspace.lookups.ensure_class_access(user, class_id)

    scope = ReportScope(school_id=user.school_id, year_id=year_id, term_id=term_id, class_id=class_id)
    try:
        return await workspace.report_cards.student_report(scope, student_id, pass_mark)
    except UpstreamError as e:
        logger.error(f"Report card failed for student {student_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to load report card: {str(e)}"
        )
