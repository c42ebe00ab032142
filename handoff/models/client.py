"""
Client company model - the customer a project is delivered to
"""
from sqlalchemy import Column, String, DateTime, ForeignKey

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_id)
    # Contact user that logs in on behalf of this client
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    company = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    initials = Column(String, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
