from ..db import Base, utcnow


"""
ExamRequests Model
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key |
| `institute_id` | UUID | FK -> users, owner |
| `exam_name` | VARCHAR | |
| `description` | VARCHAR | |
| `time_limit_minutes` | INTEGER | Default 60 |
| `status` | ENUM | pending -> approved / rejected, terminal once decided |
| `encrypted_content` | TEXT | "<iv>:<ciphertext>", full bank including answers |
| `encryption_key` | VARCHAR(64) | at-rest key, never leaves the approval step |
| `published_handle` | VARCHAR | content-store hash, set on approval |
| `published_key` | VARCHAR(64) | key of the published envelope, set on approval |
| `exam_mode_enabled` | BOOLEAN | Default `false`, gates session start |
| `results_released` | BOOLEAN | Default `false`, one-way |
| `total_questions` | INTEGER | fixed at submission |
| `reviewer_comment`, `reviewed_at`, `reviewed_by` | | set once by the decision |
"""

from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey, Index, Uuid
from sqlalchemy import Enum as SAEnum
import uuid
import enum


class ExamRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExamRequest(Base):
    __tablename__ = "exam_requests"
    __table_args__ = (
        Index("ix_exam_requests_institute_status", "institute_id", "status"),
        Index("ix_exam_requests_status_created", "status", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institute_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    exam_name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    time_limit_minutes = Column(Integer, nullable=False, default=60)
    status = Column(SAEnum(ExamRequestStatus), default=ExamRequestStatus.PENDING, nullable=False)

    encrypted_content = Column(Text, nullable=False)
    encryption_key = Column(String(64), nullable=False)

    published_handle = Column(String, nullable=True, unique=True)
    published_key = Column(String(64), nullable=True)

    exam_mode_enabled = Column(Boolean, default=False, nullable=False)
    results_released = Column(Boolean, default=False, nullable=False)
    total_questions = Column(Integer, nullable=False)

    reviewer_comment = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
