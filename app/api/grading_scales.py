from typing import List

from fastapi import APIRouter, Depends, status, Path

from app.schemas.academics import GradeBand, GradeBandCreate
from app.middleware.authentication import RoleChecker, get_workspace
from app.services.workspace import Workspace

router = APIRouter()

# Role-based access control
allow_scale_management = RoleChecker(["headteacher", "admin", "owner"])

# Grading scale endpoints
@router.get("/grading-scales/{class_id}", response_model=List[GradeBand])
async def get_grading_scale(
    class_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Get the grade bands of a class, highest first.
    """
    return await workspace.scales.list_bands(workspace.user.school_id, class_id)

@router.post("/grading-scales/{class_id}", response_model=List[GradeBand], status_code=status.HTTP_201_CREATED)
async def save_grade_band(
    band: GradeBandCreate,
    class_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
    _: object = Depends(allow_scale_management),
):
    """
    Add a grade band, or update it when an id is given.

    Bands of one class may not overlap.
    """
    return await workspace.scales.save_band(workspace.user.school_id, class_id, band)

@router.delete("/grading-scales/{class_id}/{band_id}", response_model=List[GradeBand])
async def delete_grade_band(
    class_id: int = Path(..., gt=0),
    band_id: int = Path(..., gt=0),
    workspace: Workspace = Depends(get_workspace),
    _: object = Depends(allow_scale_management),
):
    """
    Delete a grade band.
    """
    return await workspace.scales.delete_band(workspace.user.school_id, class_id, band_id)
