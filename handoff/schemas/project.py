"""
View models returned by the project and deliverable services
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class ClientView(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    logo_url: Optional[str] = None
    initials: Optional[str] = None

    class Config:
        from_attributes = True


class DesignerView(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    logo_url: Optional[str] = None
    initials: Optional[str] = None


class DeadlineView(BaseModel):
    kind: str
    label: str
    days: int

    class Config:
        from_attributes = True


class CommentView(BaseModel):
    id: str
    deliverable_id: str
    project_id: str
    user_id: Optional[str] = None
    client_id: Optional[str] = None
    content: str
    is_client: bool = False
    is_system_message: bool = False
    milestone_name: Optional[str] = None
    version_name: Optional[str] = None
    # The step of the commented deliverable; not stored on the row
    milestone_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeliverableView(BaseModel):
    id: str
    project_id: str
    step_id: str
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    preview_url: Optional[str] = None
    version_name: Optional[str] = None
    version_number: int = 1
    is_latest: bool = False
    status: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    latest_label: Optional[str] = None
    can_approve: bool = False
    can_reject: bool = False
    comments: List[CommentView] = []

    class Config:
        from_attributes = True


class StepView(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: str
    order_index: int = 0
    due_date: Optional[date] = None
    icon: Optional[str] = None
    is_available: bool = False
    deadline: Optional[DeadlineView] = None
    versions: List[DeliverableView] = []

    class Config:
        from_attributes = True


class SharedFileView(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[str] = None
    file_url: str
    storage_path: Optional[str] = None
    preview_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    is_client: bool = False
    client_id: Optional[str] = None
    status: str = "New"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectSummary(BaseModel):
    id: str
    title: str
    internal_name: Optional[str] = None
    status: str
    progress: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    client_id: Optional[str] = None
    color_theme: Optional[str] = None
    project_number: Optional[str] = None
    created_at: Optional[datetime] = None
    client: Optional[ClientView] = None

    class Config:
        from_attributes = True


class ProjectDetails(ProjectSummary):
    designer: Optional[DesignerView] = None
    steps: List[StepView] = []
    comments: List[CommentView] = []
    shared_files: List[SharedFileView] = []
    current_step_id: Optional[str] = None

    def find_step(self, step_id: Optional[str]) -> Optional[StepView]:
        return next((s for s in self.steps if s.id == step_id), None)

    def find_deliverable(self, deliverable_id: Optional[str]) -> Optional[DeliverableView]:
        for step in self.steps:
            for version in step.versions:
                if version.id == deliverable_id:
                    return version
        return None


class ProjectStats(BaseModel):
    project_id: str
    total_steps: int
    completed_steps: int
    total_deliverables: int
    approved_deliverables: int
    rejected_deliverables: int
    total_comments: int
    client_comments: int
    designer_comments: int
    total_files: int
    client_files: int
    designer_files: int
    progress: int
    days_left: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
