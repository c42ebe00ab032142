"""
Projects API endpoints - project page view model, milestones, comments and shared files
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel

from handoff.api.auth import find_client_id, get_current_user
from handoff.api.deps import get_deliverable_service, get_project_service
from handoff.models.user import User
from handoff.schemas.project import (
    CommentView, ProjectDetails, ProjectStats, ProjectSummary, SharedFileView, StepView,
)
from handoff.services import rules
from handoff.services.deliverables import DeliverableService
from handoff.services.projects import ProjectService
from handoff.services.view_state import build_deliverable

router = APIRouter()


# ─── Schemas ───

class FirstVersion(BaseModel):
    title: str
    file_url: str
    version_name: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None


class StepCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    icon: Optional[str] = None
    deliverable: Optional[FirstVersion] = None


# ─── Endpoints ───

@router.get("/", response_model=List[ProjectSummary])
async def list_projects(
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    return await service.list_projects()


@router.get("/{project_id}", response_model=ProjectDetails)
async def get_project(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    """Everything the project page renders, in one response"""
    return await service.get_project_details(project_id)


@router.get("/{project_id}/stats", response_model=ProjectStats)
async def get_project_stats(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    return await service.get_project_stats(project_id)


@router.post("/{project_id}/steps")
async def add_step(
    project_id: str,
    data: StepCreate,
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    if data.deliverable is None:
        step = await service.add_step(project_id, data.title, data.description, data.due_date, data.icon)
        return StepView.model_validate(step)

    step, deliverable = await service.add_step_with_deliverable(
        project_id,
        data.title,
        data.deliverable.title,
        data.deliverable.file_url,
        created_by=current_user.id,
        description=data.description,
        due_date=data.due_date,
        icon=data.icon,
        version_name=data.deliverable.version_name,
        file_name=data.deliverable.file_name,
        file_type=data.deliverable.file_type,
    )
    return {
        "step": StepView.model_validate(step),
        "deliverable": build_deliverable(deliverable),
    }


@router.get("/{project_id}/comments", response_model=List[CommentView])
async def list_comments(
    project_id: str,
    scope: str = Query(rules.SCOPE_ALL),
    milestone_id: Optional[str] = Query(None),
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    return await service.list_comments(project_id, scope=scope, milestone_id=milestone_id)


@router.get("/{project_id}/files", response_model=List[SharedFileView])
async def list_files(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    return await service.list_shared_files(project_id)


@router.post("/{project_id}/files", response_model=SharedFileView)
async def upload_file(
    project_id: str,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    """Share an ad hoc file on the project; the uploader's role decides which side it belongs to"""
    content = await file.read()
    client_id = await find_client_id(service.gateway.session, current_user) if current_user.is_client else None
    row = await service.upload_shared_file(
        project_id,
        current_user.id,
        current_user.is_client,
        client_id,
        content,
        file.filename,
        content_type=file.content_type,
        title=title,
        description=description,
    )
    return row


@router.delete("/{project_id}/files/{file_id}")
async def delete_file(
    project_id: str,
    file_id: str,
    service: ProjectService = Depends(get_project_service),
    current_user: User = Depends(get_current_user),
):
    row = await service.delete_shared_file(file_id, project_id=project_id)
    return {"deleted": True, "id": row.id}
