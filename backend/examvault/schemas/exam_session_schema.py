from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, List
from uuid import UUID
from datetime import datetime

from .question_schema import SanitizedQuestion


class StartExamPayload(BaseModel):
    handle: str = Field(..., min_length=1, description="Content-store hash of the published exam.")


class StartExamResponse(BaseModel):
    session_id: UUID
    exam_id: UUID
    exam_name: str
    time_limit_minutes: int
    total_questions: int
    started_at: datetime
    answers: Dict[str, object] = {}
    questions: List[SanitizedQuestion]
    resumed: bool

    model_config = ConfigDict(from_attributes=True)


class SubmitPayload(BaseModel):
    session_id: UUID
    # question index -> selected option, both 0-based
    answers: Dict[str, Optional[int]] = {}


class SubmitResponse(BaseModel):
    message: str
    session_id: UUID
    status: str
    submitted_at: datetime


class StudentResult(BaseModel):
    id: UUID
    exam_id: UUID
    exam_name: str
    handle: Optional[str]
    score: Optional[float]
    correct_answers: Optional[int]
    total_questions: int
    submitted_at: Optional[datetime]
    results_available: bool


class InstituteExamResult(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str]
    student_email: Optional[str]
    status: str
    score: Optional[float]
    correct_answers: Optional[int]
    total_questions: int
    submitted_at: Optional[datetime]
    results_available: bool


class ReleaseResponse(BaseModel):
    released: bool
    total_sessions: int
    notified_count: int
    failed_count: int
    skipped_count: int
