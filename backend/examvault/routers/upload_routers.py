import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db import get_async_session
from ..dependencies import current_institute
from ..schemas.exam_request_schema import ExamRequestRead, UploadResponse
from ..services.exam_request_service import get_exam_request, submit_exam_request
from ..services.exam_service import _exam_request_to_read_dict, list_institute_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_exam(
    file: UploadFile = File(...),
    exam_name: str = Form(...),
    description: str = Form(...),
    exam_duration: Optional[int] = Form(None),
    user = Depends(current_institute),
    session: AsyncSession = Depends(get_async_session),
):
    """Upload a JSON question bank. It is validated in full and stored encrypted, pending admin review."""
    if not (file.filename or "").lower().endswith(".json"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only JSON files are allowed")

    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    contents = await file.read(max_bytes + 1)
    if len(contents) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size cannot exceed {settings.MAX_UPLOAD_SIZE_MB}MB",
        )

    logger.info("Upload of %s (%s bytes) by institute %s", file.filename, len(contents), user.id)
    req = await submit_exam_request(
        session,
        institute_id=user.id,
        exam_name=exam_name,
        description=description,
        raw_content=contents,
        time_limit_minutes=exam_duration,
    )
    return {
        "message": "Exam request submitted successfully",
        "request_id": req.id,
        "total_questions": req.total_questions,
    }


@router.get("/mine", response_model=List[ExamRequestRead])
async def my_uploads(user = Depends(current_institute), session: AsyncSession = Depends(get_async_session)):
    return await list_institute_uploads(session, user.id)


@router.get("/{request_id}", response_model=ExamRequestRead)
async def upload_details(request_id: UUID, user = Depends(current_institute), session: AsyncSession = Depends(get_async_session)):
    # another institute's request reads as not found
    req = await get_exam_request(session, request_id, institute_id=user.id)
    return _exam_request_to_read_dict(req, user)
