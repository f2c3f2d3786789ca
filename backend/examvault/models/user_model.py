from ..db import Base, utcnow
from sqlalchemy import String, DateTime
from sqlalchemy import Column, Enum as SQLAlchemyEnum
from fastapi_users.db import SQLAlchemyBaseUserTableUUID
import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    INSTITUTE = "institute"
    STUDENT = "student"


class User(SQLAlchemyBaseUserTableUUID, Base):
    """Accounts for all three actors; institutes upload exams, admins review them, students sit them."""
    __tablename__ = "users"
    full_name = Column(String, nullable=False, default="")
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.STUDENT, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
