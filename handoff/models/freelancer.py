"""
Designer (freelancer) profile and its assignment to projects
"""
from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship

from handoff.database import Base
from handoff.utils.helpers import new_id


class Freelancer(Base):
    __tablename__ = "freelancers"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    company = Column(String, nullable=True)
    role = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    initials = Column(String, nullable=True)

    # Eager so it is safe to read from async code
    user = relationship("User", lazy="selectin")


class ProjectFreelancer(Base):
    __tablename__ = "project_freelancers"

    project_id = Column(String(36), ForeignKey("projects.id"), primary_key=True)
    freelancer_id = Column(String(36), ForeignKey("freelancers.id"), primary_key=True)
    role = Column(String, nullable=True)
