from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime


class ExamRequestRead(BaseModel):
    id: UUID
    institute_id: UUID
    institute_name: Optional[str] = None
    institute_email: Optional[str] = None
    exam_name: str
    description: str
    time_limit_minutes: int
    total_questions: int
    status: str
    handle: Optional[str] = None
    exam_mode_enabled: bool
    results_released: bool
    reviewer_comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class UploadResponse(BaseModel):
    message: str
    request_id: UUID
    total_questions: int


class ReviewDecision(BaseModel):
    status: str = Field(..., description="approved or rejected")
    comment: Optional[str] = None


class ReviewResponse(BaseModel):
    message: str
    request: ExamRequestRead


class ExamModeUpdate(BaseModel):
    exam_mode: bool


class ExamModeStatus(BaseModel):
    exam_mode: bool
    message: str


class DashboardStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class AvailableExam(BaseModel):
    id: UUID
    exam_name: str
    description: str
    time_limit_minutes: int
    total_questions: int
    handle: Optional[str] = None
    exam_mode_enabled: bool
