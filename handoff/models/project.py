"""
Project models - a client project and its ordered milestones ("steps")
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class ProjectStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StepStatus(str, Enum):
    UPCOMING = "upcoming"
    CURRENT = "current"
    COMPLETED = "completed"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    internal_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default=ProjectStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=True, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    color_theme = Column(String, nullable=True)
    project_number = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class ProjectStep(Base):
    __tablename__ = "project_steps"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=StepStatus.UPCOMING.value)
    order_index = Column(Integer, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    icon = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
