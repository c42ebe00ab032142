"""
Project view model assembly and realtime merge.

The aggregation service builds a ProjectDetails once per page load;
ProjectViewState then keeps it current by folding in realtime changes. Inserts
and updates upsert by id, deletes remove by id, so replaying a change is
harmless.
"""
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from handoff.schemas.project import (
    CommentView, DeadlineView, DeliverableView, ProjectDetails, SharedFileView, StepView,
)
from handoff.services import rules
from handoff.services.realtime import Change, DELETE
from handoff.utils.helpers import to_datetime

logger = logging.getLogger(__name__)


def build_comment(row: Any, milestone_id: Optional[str] = None) -> CommentView:
    view = CommentView.model_validate(row)
    view.milestone_id = milestone_id
    return view


def build_deliverable(row: Any, comments: Optional[List[CommentView]] = None) -> DeliverableView:
    view = DeliverableView.model_validate(row)
    view.comments = list(comments or [])
    view.latest_label = rules.latest_label(view)
    view.can_approve = rules.can_approve(view)
    view.can_reject = rules.can_reject(view)
    return view


def build_step(row: Any, versions: Optional[List[DeliverableView]] = None) -> StepView:
    view = StepView.model_validate(row)
    view.versions = rules.sort_versions(versions or [])
    return view


def refresh_flags(details: ProjectDetails, now: Optional[datetime] = None) -> ProjectDetails:
    """Recompute every derived display flag from the current rows"""
    details.steps.sort(key=lambda s: s.order_index)
    available = set(rules.available_step_ids(details.steps))
    current = rules.current_step_index(details.steps)
    details.current_step_id = details.steps[current].id if current >= 0 else None

    for step in details.steps:
        step.is_available = step.id in available
        deadline = rules.deadline_status(step.due_date, now=now)
        step.deadline = DeadlineView.model_validate(deadline) if deadline else None
        step.versions = rules.sort_versions(step.versions)
        for version in step.versions:
            version.latest_label = rules.latest_label(version)
            version.can_approve = rules.can_approve(version)
            version.can_reject = rules.can_reject(version)
            version.comments = rules.filter_comments(version.comments, scope=rules.SCOPE_ALL)

    details.comments = rules.filter_comments(details.comments, scope=rules.SCOPE_ALL)
    details.shared_files.sort(key=lambda f: to_datetime(f.created_at) or datetime.min, reverse=True)
    return details


def _upsert(items: list, item: Any) -> None:
    for index, existing in enumerate(items):
        if existing.id == item.id:
            items[index] = item
            return
    items.append(item)


def _remove(items: list, item_id: Optional[str]) -> None:
    items[:] = [existing for existing in items if existing.id != item_id]


class ProjectViewState:
    """Local copy of one project's view model kept in step with the change feed"""

    def __init__(self, details: ProjectDetails, now: Optional[Callable[[], datetime]] = None):
        self.details = details
        self._now = now

    @property
    def project_id(self) -> str:
        return self.details.id

    def apply(self, change: Change) -> bool:
        """Merge one change; returns False when the change is not about this project"""
        record = change.record or {}
        owner = record.get("id") if change.table == "projects" else record.get("project_id")
        if owner != self.project_id:
            return False

        handler = getattr(self, f"_apply_{change.table}", None)
        if handler is None:
            logger.debug(f"Ignoring realtime change on {change.table}")
            return False
        handler(change, record)
        refresh_flags(self.details, now=self._now() if self._now else None)
        return True

    def _apply_projects(self, change: Change, record: dict) -> None:
        if change.event == DELETE:
            return
        for name in ("title", "internal_name", "status", "progress", "start_date",
                     "end_date", "color_theme", "project_number"):
            if name in record:
                setattr(self.details, name, record[name])

    def _apply_project_steps(self, change: Change, record: dict) -> None:
        if change.event == DELETE:
            _remove(self.details.steps, record.get("id"))
            return
        existing = self.details.find_step(record.get("id"))
        _upsert(self.details.steps, build_step(record, existing.versions if existing else []))

    def _apply_deliverables(self, change: Change, record: dict) -> None:
        deliverable_id = record.get("id")
        existing = self.details.find_deliverable(deliverable_id)
        for step in self.details.steps:
            _remove(step.versions, deliverable_id)
        if change.event == DELETE:
            self.details.comments = [c for c in self.details.comments if c.deliverable_id != deliverable_id]
            return

        step = self.details.find_step(record.get("step_id"))
        if step is None:
            logger.warning(f"Deliverable {deliverable_id} refers to unknown step {record.get('step_id')}")
            return
        _upsert(step.versions, build_deliverable(record, existing.comments if existing else []))

    def _apply_comments(self, change: Change, record: dict) -> None:
        comment_id = record.get("id")
        _remove(self.details.comments, comment_id)
        for step in self.details.steps:
            for version in step.versions:
                _remove(version.comments, comment_id)
        if change.event == DELETE:
            return

        deliverable = self.details.find_deliverable(record.get("deliverable_id"))
        comment = build_comment(record, deliverable.step_id if deliverable else None)
        self.details.comments.append(comment)
        if deliverable is not None:
            deliverable.comments.append(comment)

    def _apply_shared_files(self, change: Change, record: dict) -> None:
        if change.event == DELETE:
            _remove(self.details.shared_files, record.get("id"))
            return
        _upsert(self.details.shared_files, SharedFileView.model_validate(record))
