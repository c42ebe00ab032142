"""
Comment model - discussion attached to a deliverable version
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Boolean

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=new_id)
    deliverable_id = Column(String(36), ForeignKey("deliverables.id"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=True)
    content = Column(Text, nullable=False)
    is_client = Column(Boolean, nullable=False, default=False)
    is_system_message = Column(Boolean, nullable=False, default=False)

    # Denormalized labels, copied from the step and deliverable at write time
    milestone_name = Column(String, nullable=True)
    version_name = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
