from dataclasses import asdict
from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..dependencies import current_student, get_content_store
from ..schemas.exam_request_schema import AvailableExam
from ..schemas.exam_session_schema import StartExamPayload, StartExamResponse, StudentResult, SubmitPayload, SubmitResponse
from ..services.exam_service import list_available_exams
from ..services.results_service import get_student_results
from ..services.session_service import start_exam_session, submit_exam_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/student/exams", response_model=List[AvailableExam])
async def list_exams(user = Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await list_available_exams(session, user.id)


@router.post("/exams/start", response_model=StartExamResponse)
async def start_exam(
    payload: StartExamPayload,
    user = Depends(current_student),
    session: AsyncSession = Depends(get_async_session),
    content_store = Depends(get_content_store),
):
    started = await start_exam_session(session, content_store, user.id, payload.handle)
    return asdict(started)


@router.post("/exams/submit", response_model=SubmitResponse)
async def submit_exam(
    payload: SubmitPayload,
    user = Depends(current_student),
    session: AsyncSession = Depends(get_async_session),
    content_store = Depends(get_content_store),
):
    # the score is not returned here; it becomes visible once results are released
    exam_session = await submit_exam_session(session, content_store, payload.session_id, user.id, payload.answers)
    return {
        "message": "Exam submitted successfully",
        "session_id": exam_session.id,
        "status": exam_session.status.value,
        "submitted_at": exam_session.submitted_at,
    }


@router.get("/student/results", response_model=List[StudentResult])
async def my_results(user = Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await get_student_results(session, user.id)
