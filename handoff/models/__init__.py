from handoff.models.user import User, UserRole
from handoff.models.client import Client
from handoff.models.freelancer import Freelancer, ProjectFreelancer
from handoff.models.project import Project, ProjectStatus, ProjectStep, StepStatus
from handoff.models.deliverable import ApprovalStatus, Deliverable
from handoff.models.comment import Comment
from handoff.models.shared_file import SharedFile

__all__ = [
    "User",
    "UserRole",
    "Client",
    "Freelancer",
    "ProjectFreelancer",
    "Project",
    "ProjectStatus",
    "ProjectStep",
    "StepStatus",
    "ApprovalStatus",
    "Deliverable",
    "Comment",
    "SharedFile",
]
