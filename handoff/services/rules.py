"""
Derived-state rules - pure functions over already-fetched rows.

Rows may be ORM objects, view models or plain dicts; fields are read by name.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Sequence, Union

from handoff.models.deliverable import ApprovalStatus
from handoff.models.project import StepStatus
from handoff.utils.helpers import to_datetime, utcnow

LATEST_LABEL = "Latest"
SCOPE_MILESTONE = "milestone"
SCOPE_ALL = "all"


def _get(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


# ─── Milestone availability ───

def current_step_index(steps: Sequence[Any], current_step_id: Optional[str] = None) -> int:
    """Position of the current step (explicit id first, else first 'current' status); -1 if none"""
    for index, step in enumerate(steps):
        if current_step_id is not None:
            if _get(step, "id") == current_step_id:
                return index
        elif _get(step, "status") == StepStatus.CURRENT.value:
            return index
    return -1


def is_step_available(steps: Sequence[Any], step: Any, current_step_id: Optional[str] = None) -> bool:
    """Completed steps and everything up to the current one are selectable"""
    if _get(step, "status") == StepStatus.COMPLETED.value:
        return True
    current = current_step_index(steps, current_step_id)
    step_id = _get(step, "id")
    for index, candidate in enumerate(steps):
        if _get(candidate, "id") == step_id:
            return index <= current
    return False


def available_step_ids(steps: Sequence[Any], current_step_id: Optional[str] = None) -> List[str]:
    current = current_step_index(steps, current_step_id)
    return [
        _get(step, "id")
        for index, step in enumerate(steps)
        if index <= current or _get(step, "status") == StepStatus.COMPLETED.value
    ]


def project_progress(steps: Sequence[Any]) -> int:
    if not steps:
        return 0
    completed = sum(1 for step in steps if _get(step, "status") == StepStatus.COMPLETED.value)
    return round(completed / len(steps) * 100)


# ─── Versions ───

def sort_versions(versions: Sequence[Any]) -> List[Any]:
    """Chronological order: ascending version number"""
    return sorted(versions, key=lambda v: _get(v, "version_number") or 0)


def versions_newest_first(versions: Sequence[Any]) -> List[Any]:
    return list(reversed(sort_versions(versions)))


def latest_label(version: Any) -> Optional[str]:
    """The flag wins over numeric position, even when the flag is stale"""
    return LATEST_LABEL if _get(version, "is_latest") else None


@dataclass
class VersionOption:
    id: str
    name: Optional[str]
    version_number: int
    label: Optional[str]


def version_options(versions: Sequence[Any]) -> List[VersionOption]:
    """Newest-first entries for a version dropdown"""
    return [
        VersionOption(
            id=_get(v, "id"),
            name=_get(v, "version_name") or _get(v, "title"),
            version_number=_get(v, "version_number") or 0,
            label=latest_label(v),
        )
        for v in versions_newest_first(versions)
    ]


def default_version(versions: Sequence[Any]) -> Optional[Any]:
    """The latest-flagged version, else the highest number"""
    ordered = sort_versions(versions)
    if not ordered:
        return None
    flagged = [v for v in ordered if _get(v, "is_latest")]
    return flagged[-1] if flagged else ordered[-1]


class VersionNavigator:
    """Previous/next cursor over one deliverable group in chronological order"""

    def __init__(self, versions: Sequence[Any], current_id: Optional[str] = None):
        self.versions = sort_versions(versions)
        self._index = -1
        if current_id is not None:
            self.select(current_id)
        else:
            current = default_version(self.versions)
            if current is not None:
                self._index = self.versions.index(current)

    def _ids(self) -> List[str]:
        return [_get(v, "id") for v in self.versions]

    def select(self, version_id: str) -> Any:
        ids = self._ids()
        if version_id not in ids:
            raise KeyError(version_id)
        self._index = ids.index(version_id)
        return self.current

    @property
    def current(self) -> Optional[Any]:
        return self.versions[self._index] if self._index >= 0 else None

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    @property
    def has_next(self) -> bool:
        return 0 <= self._index < len(self.versions) - 1

    def previous(self) -> Optional[str]:
        """Move to the older neighbour; None (and no move) at the start"""
        if not self.has_previous:
            return None
        self._index -= 1
        return _get(self.current, "id")

    def next(self) -> Optional[str]:
        """Move to the newer neighbour; None (and no move) at the end"""
        if not self.has_next:
            return None
        self._index += 1
        return _get(self.current, "id")


# ─── Deadlines ───

@dataclass
class DeadlineStatus:
    kind: str
    label: str
    days: int


def deadline_status(
    due: Union[str, date, datetime, None],
    now: Optional[datetime] = None,
) -> Optional[DeadlineStatus]:
    """Band the day delta into overdue / due soon (0-2 days) / due in N days"""
    due_at = to_datetime(due)
    if due_at is None:
        return None
    now = to_datetime(now) if now is not None else utcnow()
    days = math.ceil((due_at - now).total_seconds() / 86400)

    if days < 0:
        return DeadlineStatus(kind="overdue", label="Overdue", days=days)
    if days <= 2:
        unit = "day" if days == 1 else "days"
        return DeadlineStatus(kind="due_soon", label=f"Due soon ({days} {unit})", days=days)
    return DeadlineStatus(kind="upcoming", label=f"Due in {days} days", days=days)


def days_left(end: Union[str, date, datetime, None], now: Optional[datetime] = None) -> int:
    end_at = to_datetime(end)
    if end_at is None:
        return 0
    now = to_datetime(now) if now is not None else utcnow()
    return max(0, math.ceil((end_at - now).total_seconds() / 86400))


# ─── Comments ───

def filter_comments(
    comments: Sequence[Any],
    scope: str = SCOPE_MILESTONE,
    milestone_id: Optional[str] = None,
) -> List[Any]:
    """'milestone' keeps exact milestone-id matches, 'all' keeps everything; oldest first"""
    if scope == SCOPE_ALL:
        selected = list(comments)
    elif scope == SCOPE_MILESTONE:
        selected = [c for c in comments if _get(c, "milestone_id") == milestone_id]
    else:
        raise ValueError(f"Unknown comment scope '{scope}'")
    return sorted(selected, key=lambda c: to_datetime(_get(c, "created_at")) or datetime.min)


# ─── Approval flags ───

def can_approve(deliverable: Any) -> bool:
    return _get(deliverable, "status") == ApprovalStatus.PENDING.value


def can_reject(deliverable: Any) -> bool:
    return _get(deliverable, "status") == ApprovalStatus.PENDING.value
