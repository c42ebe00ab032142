"""
User identity model - designers and client contacts share one table
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime

from handoff.database import Base
from handoff.utils.helpers import new_id, utcnow


class UserRole(str, Enum):
    DESIGNER = "designer"
    CLIENT = "client"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    role = Column(String, nullable=False, default=UserRole.CLIENT.value)
    hashed_password = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT.value
