from typing import List

from fastapi import APIRouter, Depends

from app.schemas.academics import AcademicLookups, SubjectAssignment
from app.middleware.authentication import get_workspace
from app.services.workspace import Workspace

router = APIRouter()

@router.get("/lookups/academic", response_model=AcademicLookups)
async def get_academic_lookups(workspace: Workspace = Depends(get_workspace)):
    """
    Get the classes, academic years and terms the user can pick from.

    Defaults point at the CURRENT year and term when the school flags one.
    """
    return await workspace.lookups.academic_lookups(workspace.user)

@router.get("/lookups/subject-assignments", response_model=List[SubjectAssignment])
async def get_subject_assignments(workspace: Workspace = Depends(get_workspace)):
    """
    Get the class/subject pairs the user enters scores for.
    """
    return await workspace.lookups.subject_assignments(workspace.user)
