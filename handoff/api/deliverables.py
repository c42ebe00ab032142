"""
Deliverables API endpoints - versions, comments and client approval
"""
import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, ValidationError as PydanticValidationError

from handoff.api.auth import client_id_for, find_client_id, get_current_user
from handoff.api.deps import get_deliverable_service
from handoff.errors import ValidationError
from handoff.models.user import User
from handoff.schemas.project import CommentView, DeliverableView
from handoff.services.deliverables import DeliverableService
from handoff.services.view_state import build_comment, build_deliverable

router = APIRouter()


# ─── Schemas ───

class VersionCreate(BaseModel):
    project_id: Optional[str] = None
    step_id: Optional[str] = None
    name: Optional[str] = None
    file_url: Optional[str] = None
    description: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None


class VersionUploadMetadata(BaseModel):
    project_id: Optional[str] = None
    step_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class ReviewRequest(BaseModel):
    client_id: Optional[str] = None


class RejectRequest(ReviewRequest):
    feedback: Optional[str] = None


class CommentCreate(BaseModel):
    content: Optional[str] = None


# ─── Versions ───

@router.post("/versions", response_model=DeliverableView)
async def create_version(
    data: VersionCreate,
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    if not data.name or not data.file_url or not data.project_id:
        raise ValidationError("name, file_url and project_id are required")
    deliverable = await service.create_version(
        data.project_id,
        data.step_id,
        data.name,
        data.file_url,
        created_by=current_user.id,
        description=data.description,
        file_name=data.file_name,
        file_type=data.file_type,
    )
    return build_deliverable(deliverable)


@router.post("/versions/upload", response_model=DeliverableView)
async def upload_version(
    file: UploadFile = File(...),
    metadata: str = Form(...),
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    """Multipart variant: the file plus a JSON metadata field"""
    try:
        meta = VersionUploadMetadata.model_validate(json.loads(metadata))
    except (json.JSONDecodeError, PydanticValidationError):
        raise ValidationError("metadata must be a JSON object")

    content = await file.read()
    deliverable = await service.create_version_from_upload(
        meta.project_id,
        meta.step_id,
        meta.name,
        content,
        file.filename,
        content_type=file.content_type,
        created_by=current_user.id,
        description=meta.description,
    )
    return build_deliverable(deliverable)


# ─── Review ───

@router.post("/{deliverable_id}/approve", response_model=DeliverableView)
async def approve_deliverable(
    deliverable_id: str,
    data: Optional[ReviewRequest] = None,
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    client_id = await client_id_for(service.gateway.session, current_user, data.client_id if data else None)
    deliverable = await service.approve(deliverable_id, client_id)
    return build_deliverable(deliverable)


@router.post("/{deliverable_id}/reject", response_model=DeliverableView)
async def reject_deliverable(
    deliverable_id: str,
    data: RejectRequest,
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    if not data.feedback or not data.feedback.strip():
        raise ValidationError("Feedback is required")
    client_id = await client_id_for(service.gateway.session, current_user, data.client_id)
    deliverable = await service.reject(deliverable_id, client_id, data.feedback, user_id=current_user.id)
    return build_deliverable(deliverable)


# ─── Comments ───

@router.get("/{deliverable_id}/comments", response_model=List[CommentView])
async def list_comments(
    deliverable_id: str,
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    return await service.list_deliverable_comments(deliverable_id)


@router.post("/{deliverable_id}/comments", response_model=CommentView)
async def add_comment(
    deliverable_id: str,
    data: CommentCreate,
    service: DeliverableService = Depends(get_deliverable_service),
    current_user: User = Depends(get_current_user),
):
    client_id = await find_client_id(service.gateway.session, current_user) if current_user.is_client else None
    comment = await service.add_comment(
        deliverable_id,
        current_user.id,
        data.content,
        is_client=current_user.is_client,
        client_id=client_id,
    )
    deliverable = await service.get(comment.deliverable_id)
    return build_comment(comment, deliverable.step_id)
