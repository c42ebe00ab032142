"""
Deliverable service - version history, comments and the client approval workflow
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

from handoff.errors import ConflictError, HandoffError, NotFoundError, ValidationError
from handoff.models.client import Client
from handoff.models.comment import Comment
from handoff.models.deliverable import ApprovalStatus, Deliverable
from handoff.models.project import Project, ProjectStep, StepStatus
from handoff.schemas.project import CommentView
from handoff.services import rules
from handoff.services.approvals import check_transition
from handoff.services.gateway import PersistenceGateway
from handoff.services.storage import DELIVERABLES_BUCKET, StorageService
from handoff.services.view_state import build_comment
from handoff.utils.helpers import file_extension
from handoff.utils.validators import require_id, require_text

logger = logging.getLogger(__name__)

DEFAULT_MILESTONE_NAME = "Milestone"
DEFAULT_VERSION_NAME = "Version"


class StepLocks:
    """One asyncio.Lock per step id, dropped once nobody holds or waits for it"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, step_id: str):
        lock = self._locks.setdefault(step_id, asyncio.Lock())
        self._users[step_id] = self._users.get(step_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[step_id] -= 1
            if not self._users[step_id]:
                del self._users[step_id]
                del self._locks[step_id]


def version_locks() -> StepLocks:
    """Shared by every request of the process"""
    return StepLocks()


async def promote_newest_version(
    gateway: PersistenceGateway, step_id: str
) -> Tuple[Optional[Deliverable], List[Deliverable]]:
    """Leave is_latest on the highest version of the step only; returns it and the rows cleared"""
    newest = await gateway.query_one(Deliverable, {"step_id": step_id}, order_by=["-version_number"])
    if newest is None:
        return None, []
    # Clear before setting so the partial unique index never sees two latest rows
    cleared = await gateway.update(Deliverable, {"step_id": step_id, "is_latest": True}, {"is_latest": False})
    await gateway.update(Deliverable, {"id": newest.id}, {"is_latest": True})
    return newest, cleared


class DeliverableService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        storage: Optional[StorageService] = None,
        locks: Optional[StepLocks] = None,
    ):
        self.gateway = gateway
        self.storage = storage
        self.locks = locks if locks is not None else version_locks()

    async def get(self, deliverable_id: str) -> Deliverable:
        deliverable_id = require_id(deliverable_id, "Deliverable ID")
        deliverable = await self.gateway.query_one(Deliverable, {"id": deliverable_id})
        if deliverable is None:
            raise NotFoundError("Deliverable not found")
        return deliverable

    # ─── Versions ───

    async def create_version(
        self,
        project_id: str,
        step_id: str,
        name: str,
        file_url: str,
        created_by: Optional[str] = None,
        description: Optional[str] = None,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        preview_url: Optional[str] = None,
    ) -> Deliverable:
        """Add the next version to a step and make it the only latest one"""
        name = require_text(name, "Name")
        file_url = require_text(file_url, "File URL")
        project_id = require_id(project_id, "Project ID")
        step_id = require_id(step_id, "Step ID")

        step = await self.gateway.query_one(ProjectStep, {"id": step_id, "project_id": project_id})
        if step is None:
            raise ValidationError("Step does not belong to this project")

        async with self.locks.hold(step.id):
            async with self.gateway.unit_of_work():
                newest = await self.gateway.query_one(
                    Deliverable, {"step_id": step.id}, order_by=["-version_number"]
                )
                next_number = (newest.version_number + 1) if newest else 1

                # Clear before insert so the partial unique index never sees two latest rows
                await self.gateway.update(Deliverable, {"step_id": step.id, "is_latest": True}, {"is_latest": False})
                [deliverable] = await self.gateway.insert(Deliverable, [{
                    "project_id": project_id,
                    "step_id": step.id,
                    "title": name,
                    "description": description or "",
                    "file_url": file_url,
                    "file_name": file_name,
                    "file_type": file_type,
                    "preview_url": preview_url or file_url,
                    "version_name": name,
                    "version_number": next_number,
                    "is_latest": True,
                    "status": ApprovalStatus.PENDING.value,
                    "created_by": created_by,
                }])

        logger.info(f"Created version {next_number} ({deliverable.id}) on step {step.id} of project {project_id}")
        return deliverable

    async def create_version_from_upload(
        self,
        project_id: str,
        step_id: str,
        name: str,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        created_by: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Deliverable:
        if self.storage is None:
            raise ValidationError("File storage is not configured")
        project_id = require_id(project_id, "Project ID")
        require_text(name, "Name")

        path = self.storage.default_upload_path(filename, folder=f"projects/{project_id}/uploads")
        stored = self.storage.upload(content, filename, content_type=content_type, bucket=DELIVERABLES_BUCKET, path=path)
        try:
            return await self.create_version(
                project_id,
                step_id,
                name,
                stored.url,
                created_by=created_by,
                description=description,
                file_name=filename,
                file_type=file_extension(filename),
            )
        except HandoffError:
            self.storage.delete(stored.bucket, stored.path)
            raise

    async def repair_latest_flags(self, step_id: str) -> Optional[Deliverable]:
        """Leave is_latest set on the highest version of the step only"""
        step_id = require_id(step_id, "Step ID")
        async with self.locks.hold(step_id):
            async with self.gateway.unit_of_work():
                newest, cleared = await promote_newest_version(self.gateway, step_id)
        if newest is None:
            return None

        stale = [row.id for row in cleared if row.id != newest.id]
        if stale:
            logger.warning(f"Cleared stale latest flag on {stale} for step {step_id}")
        return newest

    # ─── Comments ───

    async def add_comment(
        self,
        deliverable_id: str,
        user_id: Optional[str],
        content: str,
        is_client: bool,
        client_id: Optional[str] = None,
        system: bool = False,
    ) -> Comment:
        content = require_text(content, "Comment")
        deliverable = await self.get(deliverable_id)
        step = await self.gateway.query_one(ProjectStep, {"id": deliverable.step_id})

        [comment] = await self.gateway.insert(Comment, [{
            "deliverable_id": deliverable.id,
            "project_id": deliverable.project_id,
            "user_id": user_id,
            "client_id": client_id,
            "content": content,
            "is_client": is_client,
            "is_system_message": system,
            "milestone_name": step.title if step else DEFAULT_MILESTONE_NAME,
            "version_name": deliverable.version_name or DEFAULT_VERSION_NAME,
        }])
        logger.info(f"Comment {comment.id} added to deliverable {deliverable.id}")
        return comment

    async def list_comments(
        self,
        project_id: str,
        scope: str = rules.SCOPE_ALL,
        milestone_id: Optional[str] = None,
    ) -> List[CommentView]:
        project_id = require_id(project_id, "Project ID")
        if scope not in (rules.SCOPE_ALL, rules.SCOPE_MILESTONE):
            raise ValidationError(f"Unknown comment scope '{scope}'")
        if scope == rules.SCOPE_MILESTONE and not milestone_id:
            raise ValidationError("milestone_id is required for milestone scope")

        comments = await self.gateway.query(Comment, {"project_id": project_id}, order_by=["created_at"])
        deliverable_ids = {c.deliverable_id for c in comments}
        step_of = {}
        if deliverable_ids:
            step_of = {d.id: d.step_id for d in await self.gateway.query(Deliverable, {"id": deliverable_ids})}
        views = [build_comment(c, step_of.get(c.deliverable_id)) for c in comments]
        return rules.filter_comments(views, scope=scope, milestone_id=milestone_id)

    async def list_deliverable_comments(self, deliverable_id: str) -> List[CommentView]:
        deliverable = await self.get(deliverable_id)
        comments = await self.gateway.query(Comment, {"deliverable_id": deliverable.id}, order_by=["created_at"])
        return [build_comment(c, deliverable.step_id) for c in comments]

    # ─── Approval workflow ───

    async def _set_status(self, deliverable: Deliverable, target: str) -> Deliverable:
        """Guarded on the pending status so a concurrent decision loses with a conflict"""
        updated = await self.gateway.update(
            Deliverable,
            {"id": deliverable.id, "status": ApprovalStatus.PENDING.value},
            {"status": target},
        )
        if not updated:
            raise ConflictError("Deliverable was already reviewed", code=f"pending_to_{target}")
        return updated[0]

    async def _require_client(self, client_id: str) -> str:
        client_id = require_id(client_id, "Client ID")
        if await self.gateway.query_one(Client, {"id": client_id}) is None:
            raise NotFoundError("Client not found")
        return client_id

    async def approve(self, deliverable_id: str, client_id: str) -> Deliverable:
        """Approve a pending version, complete its step and open the next one"""
        deliverable_id = require_id(deliverable_id, "Deliverable ID")
        require_id(client_id, "Client ID")

        deliverable = await self.get(deliverable_id)
        client_id = await self._require_client(client_id)
        check_transition(deliverable.status, ApprovalStatus.APPROVED.value)
        project_id = deliverable.project_id

        step = await self.gateway.query_one(ProjectStep, {"id": deliverable.step_id})
        if step is not None and step.status == StepStatus.UPCOMING.value:
            raise ConflictError("Step is not open for review yet", code="step_upcoming")

        async with self.gateway.unit_of_work():
            approved = await self._set_status(deliverable, ApprovalStatus.APPROVED.value)

            steps = await self.gateway.query(ProjectStep, {"project_id": project_id}, order_by=["order_index"])
            step = next((s for s in steps if s.id == approved.step_id), None)
            if step is not None:
                await self.gateway.update(ProjectStep, {"id": step.id}, {"status": StepStatus.COMPLETED.value})
                # Only advance when no other step is still current; at most one step is current
                still_current = any(s.status == StepStatus.CURRENT.value for s in steps if s.id != step.id)
                following = [s for s in steps if s.order_index > step.order_index]
                if not still_current and following and following[0].status != StepStatus.COMPLETED.value:
                    await self.gateway.update(
                        ProjectStep, {"id": following[0].id}, {"status": StepStatus.CURRENT.value}
                    )

            steps = await self.gateway.query(ProjectStep, {"project_id": project_id})
            progress = rules.project_progress(steps)
            await self.gateway.update(Project, {"id": project_id}, {"progress": progress})

        logger.info(f"Deliverable {deliverable_id} approved by client {client_id}; project {project_id} at {progress}%")
        return approved

    async def reject(
        self,
        deliverable_id: str,
        client_id: str,
        feedback: str,
        user_id: Optional[str] = None,
    ) -> Deliverable:
        """Reject a pending version and record the client's feedback as a comment"""
        feedback = require_text(feedback, "Feedback")
        deliverable_id = require_id(deliverable_id, "Deliverable ID")
        require_id(client_id, "Client ID")

        deliverable = await self.get(deliverable_id)
        client_id = await self._require_client(client_id)
        check_transition(deliverable.status, ApprovalStatus.REJECTED.value)
        step = await self.gateway.query_one(ProjectStep, {"id": deliverable.step_id})

        async with self.gateway.unit_of_work():
            rejected = await self._set_status(deliverable, ApprovalStatus.REJECTED.value)
            await self.gateway.insert(Comment, [{
                "deliverable_id": deliverable.id,
                "project_id": deliverable.project_id,
                "user_id": user_id,
                "client_id": client_id,
                "content": feedback,
                "is_client": True,
                "milestone_name": step.title if step else DEFAULT_MILESTONE_NAME,
                "version_name": deliverable.version_name or DEFAULT_VERSION_NAME,
            }])

        logger.info(f"Deliverable {deliverable_id} rejected by client {client_id}")
        return rejected
