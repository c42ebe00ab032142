"""
Deliverable model - one row per version of the artifact attached to a step
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Index, text

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Deliverable(Base):
    __tablename__ = "deliverables"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    step_id = Column(String(36), ForeignKey("project_steps.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # File reference
    file_url = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    preview_url = Column(String, nullable=True)

    # Versioning - version_number is monotonic per step
    version_name = Column(String, nullable=True)
    version_number = Column(Integer, nullable=False, default=1)
    is_latest = Column(Boolean, nullable=False, default=False)

    status = Column(String, nullable=False, default=ApprovalStatus.PENDING.value)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        # At most one latest version per step
        Index(
            "uq_deliverables_latest_per_step",
            "step_id",
            unique=True,
            sqlite_where=text("is_latest = 1"),
            postgresql_where=text("is_latest"),
        ),
    )
