from fastapi import APIRouter, Depends, HTTPException, status, Path

from app.schemas.academics import CellUpdate, MarkRow, ScoreScope, ScoreScopeSelection, ScoreSheet
from app.schemas.reports import SaveAllResult
from app.middleware.authentication import get_workspace
from app.services.errors import UpstreamError
from app.services.workspace import Workspace

router = APIRouter()

# Score sheet endpoints
@router.put("/scores/scope", response_model=ScoreSheet)
async def select_score_sheet(
    selection: ScoreScopeSelection,
    workspace: Workspace = Depends(get_workspace),
):
    """
    Load the score sheet of one class and subject for a year and term.
    """
    user = workspace.user
    await workspace.lookups.ensure_subject_access(user, selection.class_id, selection.subject_id)

    scope = ScoreScope(school_id=user.school_id, **selection.model_dump())
    try:
        await workspace.scores.load(scope)
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to load marks: {str(e)}"
        )
    return workspace.scores.sheet()

@router.get("/scores", response_model=ScoreSheet)
async def get_score_sheet(workspace: Workspace = Depends(get_workspace)):
    """
    Get the current score sheet.
    """
    return workspace.scores.sheet()

@router.patch("/scores/rows/{student_id}", response_model=MarkRow)
async def update_score_cell(
    update: CellUpdate,
    student_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Change a class or exam score; total, grade and positions follow.
    """
    return workspace.scores.update_cell(student_id, update.field, update.value)

@router.post("/scores/rows/{student_id}/save", response_model=MarkRow)
async def save_score_row(
    student_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Save one student's mark.
    """
    return await workspace.scores.save_row(student_id)

@router.delete("/scores/rows/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_score_row(
    student_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Delete a student's stored mark and remove the row.
    """
    await workspace.scores.remove_row(student_id)

@router.post("/scores/save-all", response_model=SaveAllResult)
async def save_all_scores(workspace: Workspace = Depends(get_workspace)):
    """
    Save every edited mark, then reload the sheet.
    """
    return await workspace.scores.save_all()
