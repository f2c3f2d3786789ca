from fastapi import APIRouter, Depends
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_admin, get_content_store, get_notifier
from ..schemas.exam_request_schema import DashboardStats, ExamRequestRead, ReviewDecision, ReviewResponse
from ..services.exam_request_service import decide_exam_request
from ..services.exam_service import _exam_request_to_read_dict, dashboard_stats, list_exam_requests

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/requests", response_model=List[ExamRequestRead], dependencies=[Depends(current_admin)])
async def get_requests(session: AsyncSession = Depends(get_async_session)):
    return await list_exam_requests(session)


@router.put("/requests/{request_id}", response_model=ReviewResponse)
async def review_request(
    request_id: UUID,
    payload: ReviewDecision,
    admin = Depends(current_admin),
    session: AsyncSession = Depends(get_async_session),
    content_store = Depends(get_content_store),
    notifier = Depends(get_notifier),
):
    req = await decide_exam_request(
        session,
        content_store,
        notifier,
        request_id=request_id,
        reviewer_id=admin.id,
        status=payload.status,
        comment=payload.comment,
    )
    return {
        "message": f"Request {req.status.value} successfully",
        "request": _exam_request_to_read_dict(req),
    }


@router.get("/dashboard", response_model=DashboardStats, dependencies=[Depends(current_admin)])
async def get_dashboard(session: AsyncSession = Depends(get_async_session)):
    return await dashboard_stats(session)
