from fastapi import APIRouter, Depends
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_institute, current_student, get_notifier
from ..schemas.exam_request_schema import ExamModeStatus, ExamModeUpdate, ExamRequestRead
from ..schemas.exam_session_schema import InstituteExamResult, ReleaseResponse
from ..services.exam_request_service import set_exam_mode
from ..services.exam_service import _exam_request_to_read_dict, check_exam_mode
from ..services.results_service import get_exam_results, release_results

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.put("/{exam_id}/exam-mode", response_model=ExamRequestRead)
async def toggle_exam_mode(
    exam_id: UUID,
    payload: ExamModeUpdate,
    user = Depends(current_institute),
    session: AsyncSession = Depends(get_async_session),
):
    req = await set_exam_mode(session, exam_id, payload.exam_mode, institute_id=user.id)
    return _exam_request_to_read_dict(req)


@router.get("/check-mode/{handle}", response_model=ExamModeStatus, dependencies=[Depends(current_student)])
async def get_exam_mode(handle: str, session: AsyncSession = Depends(get_async_session)):
    return await check_exam_mode(session, handle)


@router.get("/results/{exam_id}", response_model=List[InstituteExamResult])
async def exam_results(exam_id: UUID, user = Depends(current_institute), session: AsyncSession = Depends(get_async_session)):
    return await get_exam_results(session, exam_id, institute_id=user.id)


@router.post("/release/{exam_id}", response_model=ReleaseResponse)
async def release_exam_results(
    exam_id: UUID,
    user = Depends(current_institute),
    session: AsyncSession = Depends(get_async_session),
    notifier = Depends(get_notifier),
):
    report = await release_results(session, notifier, exam_id, institute_id=user.id)
    return {
        "released": True,
        "total_sessions": report.total_sessions,
        "notified_count": report.notified_count,
        "failed_count": report.failed_count,
        "skipped_count": report.skipped_count,
    }
