"""
Student exam sessions: start (or resume) and submit.

A session is in_progress until it is submitted (completed) or its deadline
passes (timed_out); both are terminal. The answer key is never taken from the
client: the published copy is fetched and decrypted again for scoring.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db import utcnow
from ..exceptions import (
    AlreadyAttemptedError,
    ConflictError,
    CorruptContentError,
    DeadlineExceededError,
    NoActiveSessionError,
    NotFoundError,
    NotStartedError,
    UpstreamUnavailableError,
)
from ..models.exam_request_model import ExamRequest, ExamRequestStatus
from ..models.exam_session_model import ExamSession, ExamSessionStatus
from .cipher_service import DecryptionError, Structured, decrypt_from_store
from .content_codec import sanitize_for_delivery
from .content_store import ContentStore
from .grading_service import score_answers

logger = logging.getLogger(__name__)


@dataclass
class StartedExam:
    session_id: UUID
    exam_id: UUID
    exam_name: str
    time_limit_minutes: int
    total_questions: int
    started_at: datetime
    answers: Dict[str, Any]
    questions: List[Dict[str, Any]]
    resumed: bool


async def get_exam_by_handle(session: AsyncSession, handle: str) -> ExamRequest:
    handle = (handle or "").strip()
    exam = None
    if handle:
        res = await session.execute(
            select(ExamRequest).where(
                ExamRequest.published_handle == handle,
                ExamRequest.status == ExamRequestStatus.APPROVED,
            )
        )
        exam = res.scalar_one_or_none()
    if not exam:
        logger.error("No exam found with handle %s", handle)
        raise NotFoundError("Exam not found with the provided IPFS hash")
    return exam


async def load_published_questions(content_store: ContentStore, handle: str, key: str) -> List[Dict[str, Any]]:
    """Fetch and decrypt the published question bank, answer key included."""
    envelope = await content_store.fetch(handle)
    if not isinstance(envelope, dict) or not envelope.get("iv") or not envelope.get("encryptedData"):
        logger.error("Invalid envelope format for handle %s", handle)
        raise CorruptContentError("Invalid data format from content store")
    try:
        payload = decrypt_from_store(envelope, key)
    except DecryptionError as e:
        logger.error("Published content %s could not be decrypted: %s", handle, e)
        raise CorruptContentError("Failed to decrypt exam content")

    questions = payload.value.get("questions") if isinstance(payload, Structured) and isinstance(payload.value, dict) else None
    if not isinstance(questions, list) or not all(isinstance(q, dict) for q in questions):
        logger.error("Invalid decrypted data structure for handle %s", handle)
        raise CorruptContentError("Invalid exam data structure")
    return questions


def _deadline(started_at: datetime, time_limit_minutes: int) -> datetime:
    return started_at + timedelta(minutes=time_limit_minutes, seconds=settings.SUBMISSION_GRACE_SECONDS)


def _is_expired(exam_session: ExamSession, time_limit_minutes: int, now: datetime) -> bool:
    if not settings.ENFORCE_SUBMISSION_DEADLINE:
        return False
    return now > _deadline(exam_session.started_at, time_limit_minutes)


async def _find_session(session: AsyncSession, exam_id: UUID, student_id: UUID) -> Optional[ExamSession]:
    res = await session.execute(
        select(ExamSession).where(ExamSession.exam_id == exam_id, ExamSession.student_id == student_id)
    )
    return res.scalar_one_or_none()


async def _close_session(session: AsyncSession, session_id: UUID, values: Dict[str, Any]) -> bool:
    # conditional on in_progress so a retried or concurrent submit cannot score twice
    result = await session.execute(
        update(ExamSession)
        .where(ExamSession.id == session_id, ExamSession.status == ExamSessionStatus.IN_PROGRESS)
        .values(**values)
    )
    if result.rowcount == 0:
        await session.rollback()
        return False
    await session.commit()
    return True


async def _check_resumable(session: AsyncSession, exam_session: ExamSession, time_limit_minutes: int, now: datetime):
    if exam_session.status != ExamSessionStatus.IN_PROGRESS:
        logger.error("Student %s has already completed exam %s", exam_session.student_id, exam_session.exam_id)
        raise AlreadyAttemptedError("You have already attempted this exam")
    if _is_expired(exam_session, time_limit_minutes, now):
        await _close_session(session, exam_session.id, {
            "status": ExamSessionStatus.TIMED_OUT,
            "submitted_at": now,
        })
        logger.info("Session %s expired before resume, marked timed out", exam_session.id)
        raise AlreadyAttemptedError("You have already attempted this exam")


async def _create_session(
    session: AsyncSession, exam_id: UUID, student_id: UUID, total_questions: int, now: datetime
) -> Tuple[ExamSession, bool]:
    new_session = ExamSession(
        exam_id=exam_id,
        student_id=student_id,
        status=ExamSessionStatus.IN_PROGRESS,
        answers={},
        total_questions=total_questions,
        started_at=now,
        results_available=False,
    )
    session.add(new_session)
    try:
        await session.commit()
        return new_session, True
    except IntegrityError:
        # another start for the same student and exam won the insert
        await session.rollback()
        existing = await _find_session(session, exam_id, student_id)
        if existing is None:
            logger.exception("Could not create session for exam_id=%s student_id=%s", exam_id, student_id)
            raise ConflictError("Failed to create or retrieve exam session")
        logger.info("Concurrent start for exam_id=%s student_id=%s, resuming session %s",
                    exam_id, student_id, existing.id)
        return existing, False


async def start_exam_session(
    session: AsyncSession,
    content_store: ContentStore,
    student_id: UUID,
    handle: str,
    now: Optional[datetime] = None,
) -> StartedExam:
    """
    Start, or resume, the student's attempt at the exam published under ``handle``.

    A session created by this call is deleted again if the published content
    cannot be fetched or decrypted, so a content-store outage does not use up
    the student's single attempt.
    """
    logger.info("Starting exam with handle %s for student %s", handle, student_id)
    exam = await get_exam_by_handle(session, handle)
    if not exam.exam_mode_enabled:
        logger.error("Attempt to start exam %s while exam mode is disabled", exam.id)
        raise NotStartedError("This exam has not been started by the institute yet")

    # plain copies: a rollback below expires the ORM instance
    exam_id = exam.id
    exam_name = exam.exam_name
    time_limit = exam.time_limit_minutes
    total_questions = exam.total_questions
    published_handle = exam.published_handle
    published_key = exam.published_key

    now = now or utcnow()
    created = False
    exam_session = await _find_session(session, exam_id, student_id)
    if exam_session is None:
        exam_session, created = await _create_session(session, exam_id, student_id, total_questions, now)
    if not created:
        await _check_resumable(session, exam_session, time_limit, now)
        logger.info("Resuming existing session %s", exam_session.id)

    session_id = exam_session.id
    started_at = exam_session.started_at
    answers = dict(exam_session.answers or {})

    try:
        questions = await load_published_questions(content_store, published_handle, published_key)
    except (CorruptContentError, UpstreamUnavailableError):
        if created:
            await session.execute(delete(ExamSession).where(ExamSession.id == session_id))
            await session.commit()
            logger.warning("Removed session %s after failing to load exam content", session_id)
        raise

    return StartedExam(
        session_id=session_id,
        exam_id=exam_id,
        exam_name=exam_name,
        time_limit_minutes=time_limit,
        total_questions=total_questions,
        started_at=started_at,
        answers=answers,
        questions=sanitize_for_delivery(questions),
        resumed=not created,
    )


async def submit_exam_session(
    session: AsyncSession,
    content_store: ContentStore,
    session_id: UUID,
    student_id: UUID,
    answers: Mapping[Any, Any],
    now: Optional[datetime] = None,
) -> ExamSession:
    res = await session.execute(
        select(ExamSession).where(ExamSession.id == session_id, ExamSession.student_id == student_id)
    )
    exam_session = res.scalar_one_or_none()
    if exam_session is None or exam_session.status != ExamSessionStatus.IN_PROGRESS:
        logger.error("No active exam session %s for student %s", session_id, student_id)
        raise NoActiveSessionError("No active exam session found")

    exam = await session.get(ExamRequest, exam_session.exam_id)
    if exam is None:
        raise NotFoundError("Exam not found")

    # JSON object keys are strings
    submitted = {str(k): v for k, v in (answers or {}).items()}
    now = now or utcnow()

    if _is_expired(exam_session, exam.time_limit_minutes, now):
        closed = await _close_session(session, exam_session.id, {
            "status": ExamSessionStatus.TIMED_OUT,
            "answers": submitted,
            "submitted_at": now,
        })
        if not closed:
            raise NoActiveSessionError("Exam has already been submitted")
        logger.warning("Late submission for session %s rejected, marked timed out", exam_session.id)
        raise DeadlineExceededError("The time limit for this exam has passed")

    questions = await load_published_questions(content_store, exam.published_handle, exam.published_key)
    result = score_answers(submitted, questions)

    closed = await _close_session(session, exam_session.id, {
        "status": ExamSessionStatus.COMPLETED,
        "answers": submitted,
        "score": result.percentage,
        "correct_answer_count": result.correct_count,
        "total_questions": result.total_questions,
        "submitted_at": now,
        "results_available": False,
    })
    if not closed:
        logger.warning("Duplicate submission for session %s ignored", exam_session.id)
        raise NoActiveSessionError("Exam has already been submitted")

    await session.refresh(exam_session)
    logger.info("Session %s submitted: %s/%s correct", exam_session.id, result.correct_count, result.total_questions)
    return exam_session
