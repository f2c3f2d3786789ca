from ..db import Base, utcnow
from sqlalchemy import Column, Integer, Float, Boolean, DateTime, JSON, Uuid, Enum as SAEnum, UniqueConstraint
from sqlalchemy import ForeignKey
from sqlalchemy.ext.mutable import MutableDict
import uuid
import enum


class ExamSessionStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


class ExamSession(Base):
    __tablename__ = "exam_sessions"
    # one attempt per student per exam; concurrent starts race on this constraint
    __table_args__ = (UniqueConstraint('exam_id', 'student_id', name='uq_exam_student'),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    exam_id = Column(Uuid, ForeignKey("exam_requests.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    status = Column(SAEnum(ExamSessionStatus), default=ExamSessionStatus.IN_PROGRESS, nullable=False)

    # question index (str) -> selected option index, 0-based
    answers = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)
    score = Column(Float, nullable=True)
    correct_answer_count = Column(Integer, nullable=True)
    total_questions = Column(Integer, nullable=False)

    started_at = Column(DateTime, default=utcnow, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    results_available = Column(Boolean, default=False, nullable=False)
