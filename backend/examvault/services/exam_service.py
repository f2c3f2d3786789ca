from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.exam_request_model import ExamRequest, ExamRequestStatus
from ..models.exam_session_model import ExamSession
from ..models.user_model import User
from .session_service import get_exam_by_handle


def _exam_request_to_read_dict(req: ExamRequest, institute: User | None = None) -> dict:
    # content and both keys stay server side
    return {
        "id": req.id,
        "institute_id": req.institute_id,
        "institute_name": institute.full_name if institute else None,
        "institute_email": institute.email if institute else None,
        "exam_name": req.exam_name,
        "description": req.description,
        "time_limit_minutes": req.time_limit_minutes,
        "total_questions": req.total_questions,
        "status": req.status.value,
        "handle": req.published_handle,
        "exam_mode_enabled": req.exam_mode_enabled,
        "results_released": req.results_released,
        "reviewer_comment": req.reviewer_comment,
        "reviewed_at": req.reviewed_at,
        "created_at": req.created_at,
    }


async def list_exam_requests(session: AsyncSession) -> List[dict]:
    res = await session.execute(
        select(ExamRequest, User)
        .outerjoin(User, User.id == ExamRequest.institute_id)
        .order_by(ExamRequest.created_at.desc())
    )
    return [_exam_request_to_read_dict(req, institute) for req, institute in res.all()]


async def list_institute_uploads(session: AsyncSession, institute_id: UUID) -> List[dict]:
    res = await session.execute(
        select(ExamRequest)
        .where(ExamRequest.institute_id == institute_id)
        .order_by(ExamRequest.created_at.desc())
    )
    return [_exam_request_to_read_dict(req) for req in res.scalars().all()]


async def dashboard_stats(session: AsyncSession) -> dict:
    res = await session.execute(
        select(ExamRequest.status, func.count(ExamRequest.id)).group_by(ExamRequest.status)
    )
    counts = {row[0]: row[1] for row in res.all()}
    return {
        "total": sum(counts.values()),
        "pending": counts.get(ExamRequestStatus.PENDING, 0),
        "approved": counts.get(ExamRequestStatus.APPROVED, 0),
        "rejected": counts.get(ExamRequestStatus.REJECTED, 0),
    }


async def list_available_exams(session: AsyncSession, student_id: UUID) -> List[dict]:
    """Approved exams the student has not attempted yet."""
    attempted = select(ExamSession.exam_id).where(ExamSession.student_id == student_id)
    res = await session.execute(
        select(ExamRequest)
        .where(ExamRequest.status == ExamRequestStatus.APPROVED, ExamRequest.id.not_in(attempted))
        .order_by(ExamRequest.created_at.desc())
    )
    return [
        {
            "id": exam.id,
            "exam_name": exam.exam_name,
            "description": exam.description,
            "time_limit_minutes": exam.time_limit_minutes,
            "total_questions": exam.total_questions,
            "handle": exam.published_handle,
            "exam_mode_enabled": exam.exam_mode_enabled,
        }
        for exam in res.scalars().all()
    ]


async def check_exam_mode(session: AsyncSession, handle: str) -> dict:
    exam = await get_exam_by_handle(session, handle)
    if exam.exam_mode_enabled:
        message = "Exam is ready to start"
    else:
        message = "Exam has not been started by the institute yet"
    return {"exam_mode": exam.exam_mode_enabled, "message": message}
