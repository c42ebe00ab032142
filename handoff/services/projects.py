"""
Project aggregation service - assembles the project page view model and
handles milestones and shared files.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from handoff.errors import HandoffError, NotFoundError, ValidationError
from handoff.models.client import Client
from handoff.models.comment import Comment
from handoff.models.deliverable import ApprovalStatus, Deliverable
from handoff.models.freelancer import Freelancer, ProjectFreelancer
from handoff.models.project import Project, ProjectStep, StepStatus
from handoff.models.shared_file import SharedFile
from handoff.models.user import User
from handoff.schemas.project import (
    ClientView, DesignerView, ProjectDetails, ProjectStats, ProjectSummary, SharedFileView,
)
from handoff.services import rules
from handoff.services.gateway import PersistenceGateway
from handoff.services.storage import SHARED_FILES_BUCKET, StorageService
from handoff.services.view_state import build_comment, build_deliverable, build_step, refresh_flags
from handoff.utils.helpers import file_extension, format_file_size, is_previewable, to_datetime
from handoff.utils.validators import require_id, require_text

logger = logging.getLogger(__name__)


def _as_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    parsed = to_datetime(value)
    return parsed.date() if parsed else None


class ProjectService:
    def __init__(self, gateway: PersistenceGateway, storage: Optional[StorageService] = None):
        self.gateway = gateway
        self.storage = storage

    async def _get_project(self, project_id: str) -> Project:
        project_id = require_id(project_id, "Project ID")
        project = await self.gateway.query_one(Project, {"id": project_id})
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def _get_designer(self, project_id: str) -> Optional[DesignerView]:
        link = await self.gateway.query_one(ProjectFreelancer, {"project_id": project_id})
        if link is None:
            return None
        freelancer = await self.gateway.query_one(Freelancer, {"id": link.freelancer_id})
        if freelancer is None:
            logger.warning(f"Project {project_id} links to missing freelancer {link.freelancer_id}")
            return None
        user: Optional[User] = freelancer.user
        return DesignerView(
            id=freelancer.id,
            user_id=freelancer.user_id,
            full_name=user.full_name if user else None,
            email=user.email if user else None,
            avatar_url=user.avatar_url if user else None,
            company=freelancer.company,
            role=freelancer.role,
            phone=freelancer.phone,
            logo_url=freelancer.logo_url,
            initials=freelancer.initials,
        )

    # ─── Aggregation ───

    async def get_project_details(self, project_id: str, now: Optional[datetime] = None) -> ProjectDetails:
        """Read the project and everything hanging off it into one view model"""
        project = await self._get_project(project_id)

        client = None
        if project.client_id:
            client = await self.gateway.query_one(Client, {"id": project.client_id})
        designer = await self._get_designer(project.id)

        steps = await self.gateway.query(ProjectStep, {"project_id": project.id}, order_by=["order_index"])
        step_ids = [s.id for s in steps]

        deliverables = []
        if step_ids:
            deliverables = await self.gateway.query(
                Deliverable, {"step_id": step_ids}, order_by=["version_number"]
            )
        deliverable_ids = [d.id for d in deliverables]

        comments = []
        if deliverable_ids:
            comments = await self.gateway.query(
                Comment, {"deliverable_id": deliverable_ids}, order_by=["created_at"]
            )

        shared_files = await self.gateway.query(SharedFile, {"project_id": project.id}, order_by=["-created_at"])

        step_of_deliverable = {d.id: d.step_id for d in deliverables}
        comment_views = [build_comment(c, step_of_deliverable.get(c.deliverable_id)) for c in comments]

        versions_by_step = {step_id: [] for step_id in step_ids}
        for deliverable in deliverables:
            versions_by_step[deliverable.step_id].append(
                build_deliverable(deliverable, [c for c in comment_views if c.deliverable_id == deliverable.id])
            )

        details = ProjectDetails.model_validate(project)
        details.client = ClientView.model_validate(client) if client else None
        details.designer = designer
        details.steps = [build_step(step, versions_by_step[step.id]) for step in steps]
        details.comments = comment_views
        details.shared_files = [SharedFileView.model_validate(f) for f in shared_files]

        logger.debug(
            f"Loaded project {project.id}: {len(steps)} steps, {len(deliverables)} deliverables, "
            f"{len(comments)} comments, {len(shared_files)} files"
        )
        return refresh_flags(details, now=now)

    async def list_projects(self) -> List[ProjectSummary]:
        projects = await self.gateway.query(Project, order_by=["-created_at"])
        client_ids = {p.client_id for p in projects if p.client_id}
        clients = {}
        if client_ids:
            clients = {c.id: c for c in await self.gateway.query(Client, {"id": client_ids})}

        summaries = []
        for project in projects:
            summary = ProjectSummary.model_validate(project)
            client = clients.get(project.client_id)
            summary.client = ClientView.model_validate(client) if client else None
            summaries.append(summary)
        return summaries

    async def get_project_stats(self, project_id: str, now: Optional[datetime] = None) -> ProjectStats:
        project = await self._get_project(project_id)
        by_project = {"project_id": project.id}

        total_comments = await self.gateway.count(Comment, by_project)
        client_comments = await self.gateway.count(Comment, {**by_project, "is_client": True})
        total_files = await self.gateway.count(SharedFile, by_project)
        client_files = await self.gateway.count(SharedFile, {**by_project, "is_client": True})

        return ProjectStats(
            project_id=project.id,
            total_steps=await self.gateway.count(ProjectStep, by_project),
            completed_steps=await self.gateway.count(
                ProjectStep, {**by_project, "status": StepStatus.COMPLETED.value}
            ),
            total_deliverables=await self.gateway.count(Deliverable, by_project),
            approved_deliverables=await self.gateway.count(
                Deliverable, {**by_project, "status": ApprovalStatus.APPROVED.value}
            ),
            rejected_deliverables=await self.gateway.count(
                Deliverable, {**by_project, "status": ApprovalStatus.REJECTED.value}
            ),
            total_comments=total_comments,
            client_comments=client_comments,
            designer_comments=total_comments - client_comments,
            total_files=total_files,
            client_files=client_files,
            designer_files=total_files - client_files,
            progress=project.progress or 0,
            days_left=rules.days_left(project.end_date, now=now),
            start_date=project.start_date,
            end_date=project.end_date,
        )

    # ─── Milestones ───

    async def add_step(
        self,
        project_id: str,
        title: str,
        description: Optional[str] = None,
        due_date: Union[str, date, None] = None,
        icon: Optional[str] = None,
    ) -> ProjectStep:
        """Append an upcoming step after the existing ones"""
        title = require_text(title, "Title")
        project = await self._get_project(project_id)
        order_index = await self.gateway.count(ProjectStep, {"project_id": project.id})

        [step] = await self.gateway.insert(ProjectStep, [{
            "project_id": project.id,
            "title": title,
            "description": description,
            "status": StepStatus.UPCOMING.value,
            "order_index": order_index,
            "due_date": _as_date(due_date),
            "icon": icon,
        }])
        logger.info(f"Added step {step.id} '{title}' to project {project.id} at position {order_index}")
        return step

    async def add_step_with_deliverable(
        self,
        project_id: str,
        title: str,
        deliverable_title: str,
        file_url: str,
        created_by: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Union[str, date, None] = None,
        icon: Optional[str] = None,
        version_name: Optional[str] = None,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
    ) -> tuple:
        """Create a step and its first version together, or neither"""
        title = require_text(title, "Title")
        deliverable_title = require_text(deliverable_title, "Deliverable title")
        file_url = require_text(file_url, "File URL")
        project = await self._get_project(project_id)

        async with self.gateway.unit_of_work():
            order_index = await self.gateway.count(ProjectStep, {"project_id": project.id})
            [step] = await self.gateway.insert(ProjectStep, [{
                "project_id": project.id,
                "title": title,
                "description": description,
                "status": StepStatus.UPCOMING.value,
                "order_index": order_index,
                "due_date": _as_date(due_date),
                "icon": icon,
            }])
            [deliverable] = await self.gateway.insert(Deliverable, [{
                "project_id": project.id,
                "step_id": step.id,
                "title": deliverable_title,
                "file_url": file_url,
                "file_name": file_name,
                "file_type": file_type or file_extension(file_name or file_url),
                "version_name": version_name or "V1",
                "version_number": 1,
                "is_latest": True,
                "status": ApprovalStatus.PENDING.value,
                "created_by": created_by,
            }])
        logger.info(f"Added step {step.id} with first version {deliverable.id} to project {project.id}")
        return step, deliverable

    # ─── Shared files ───

    async def list_shared_files(self, project_id: str) -> List[SharedFileView]:
        project = await self._get_project(project_id)
        rows = await self.gateway.query(SharedFile, {"project_id": project.id}, order_by=["-created_at"])
        return [SharedFileView.model_validate(row) for row in rows]

    async def upload_shared_file(
        self,
        project_id: str,
        user_id: Optional[str],
        is_client: bool,
        client_id: Optional[str],
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SharedFile:
        """Store the object, then record it; the object is removed again if the record fails"""
        if self.storage is None:
            raise ValidationError("File storage is not configured")
        project = await self._get_project(project_id)

        stored = self.storage.upload(
            content,
            filename,
            content_type=content_type,
            bucket=SHARED_FILES_BUCKET,
            folder=f"project-{project.id}",
        )
        try:
            [row] = await self.gateway.insert(SharedFile, [{
                "project_id": project.id,
                "title": (title or "").strip() or filename,
                "description": description,
                "file_name": filename,
                "file_type": file_extension(filename),
                "file_size": format_file_size(stored.size),
                "file_url": stored.url,
                "storage_path": stored.path,
                "preview_url": stored.url if is_previewable(filename) else None,
                "uploaded_by": user_id,
                "is_client": is_client,
                "client_id": client_id,
                "status": "New",
            }])
        except HandoffError:
            self.storage.delete(stored.bucket, stored.path)
            raise

        logger.info(f"Shared file {row.id} '{filename}' uploaded to project {project.id}")
        return row

    async def delete_shared_file(self, file_id: str, project_id: Optional[str] = None) -> SharedFile:
        file_id = require_id(file_id, "File ID")
        filters = {"id": file_id}
        if project_id is not None:
            filters["project_id"] = project_id
        row = await self.gateway.query_one(SharedFile, filters)
        if row is None:
            raise NotFoundError("File not found")

        await self.gateway.delete(SharedFile, {"id": row.id})
        if row.storage_path and self.storage is not None:
            self.storage.delete(SHARED_FILES_BUCKET, row.storage_path)

        logger.info(f"Shared file {row.id} deleted from project {row.project_id}")
        return row
