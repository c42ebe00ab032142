"""
Approval state machine for deliverables.

pending -> approved and pending -> rejected; both targets are terminal. A
rejected deliverable is superseded by a new version, never re-opened.
"""
from typing import Dict, FrozenSet

from handoff.errors import ConflictError, ValidationError
from handoff.models.deliverable import ApprovalStatus

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    ApprovalStatus.PENDING.value: frozenset({ApprovalStatus.APPROVED.value, ApprovalStatus.REJECTED.value}),
    ApprovalStatus.APPROVED.value: frozenset(),
    ApprovalStatus.REJECTED.value: frozenset(),
}


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)


def check_transition(current: str, target: str) -> str:
    if target not in TRANSITIONS:
        raise ValidationError(f"Unknown approval status '{target}'")
    if target not in TRANSITIONS.get(current, frozenset()):
        raise ConflictError(f"Deliverable is already {current}", code=f"{current}_to_{target}")
    return target
