"""
Shared file model - ad hoc exchanges outside the step/deliverable hierarchy
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Boolean

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class SharedFile(Base):
    __tablename__ = "shared_files"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # File metadata
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=True)
    file_size = Column(String, nullable=True)  # display string, e.g. "2.50 MB"
    file_url = Column(String, nullable=False)
    storage_path = Column(String, nullable=True)
    preview_url = Column(String, nullable=True)

    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    is_client = Column(Boolean, nullable=False, default=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=True)
    status = Column(String, nullable=False, default="New")
    created_at = Column(DateTime, default=utcnow)
