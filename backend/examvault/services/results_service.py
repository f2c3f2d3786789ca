import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.exam_request_model import ExamRequest
from ..models.exam_session_model import ExamSession, ExamSessionStatus
from ..models.user_model import User
from .exam_request_service import get_exam_request
from .notification_service import ExamNotifier

logger = logging.getLogger(__name__)


@dataclass
class ReleaseReport:
    exam_id: UUID
    total_sessions: int
    notified_count: int
    failed_count: int
    skipped_count: int


async def _notify_student(notifier: ExamNotifier, exam_name: str, exam_session: ExamSession, student: User) -> bool:
    try:
        await notifier.notify_result(
            to=student.email,
            student_name=student.full_name,
            exam_name=exam_name,
            session_id=exam_session.id,
            score=exam_session.score or 0,
            correct_answers=exam_session.correct_answer_count or 0,
            total_questions=exam_session.total_questions,
            submitted_at=exam_session.submitted_at,
        )
    except Exception:
        # one bad address must not stop the rest of the batch
        logger.exception("Result notification failed for student %s, exam session %s",
                         student.id, exam_session.id)
        return False
    logger.info("Result notification sent to %s", student.email)
    return True


async def release_results(
    session: AsyncSession,
    notifier: Optional[ExamNotifier],
    exam_id: UUID,
    institute_id: Optional[UUID] = None,
    batch_size: Optional[int] = None,
) -> ReleaseReport:
    """
    Make the results of every session of an exam visible and e-mail students.

    Releasing is one-way and idempotent. Completed sessions with a known
    address are notified in batches of ``batch_size``; batches run one after
    another and the sends inside a batch run concurrently, up to the mailer's
    SMTP pool size (``SMTP_POOL_SIZE``) at a time.
    """
    exam = await get_exam_request(session, exam_id, institute_id)
    exam_id = exam.id
    exam_name = exam.exam_name
    logger.info("Releasing results for exam %s", exam_id)

    exam.results_released = True
    session.add(exam)
    await session.execute(
        update(ExamSession)
        .where(ExamSession.exam_id == exam_id)
        .values(results_available=True)
    )
    await session.commit()

    res = await session.execute(
        select(ExamSession, User)
        .outerjoin(User, User.id == ExamSession.student_id)
        .where(ExamSession.exam_id == exam_id)
    )
    rows = res.all()

    recipients = []
    for exam_session, student in rows:
        if exam_session.status != ExamSessionStatus.COMPLETED:
            continue
        if student is None or not student.email:
            logger.warning("No email found for student %s", exam_session.student_id)
            continue
        recipients.append((exam_session, student))

    notified = 0
    failed = 0
    if notifier is not None:
        size = batch_size or settings.RESULTS_EMAIL_BATCH_SIZE
        for start in range(0, len(recipients), size):
            batch = recipients[start:start + size]
            outcomes = await asyncio.gather(
                *(_notify_student(notifier, exam_name, s, student) for s, student in batch)
            )
            notified += sum(1 for ok in outcomes if ok)
            failed += sum(1 for ok in outcomes if not ok)

    report = ReleaseReport(
        exam_id=exam_id,
        total_sessions=len(rows),
        notified_count=notified,
        failed_count=failed,
        skipped_count=len(rows) - notified - failed,
    )
    logger.info("Results released for exam %s: %s notified, %s failed, %s skipped",
                exam_id, report.notified_count, report.failed_count, report.skipped_count)
    return report


async def get_student_results(session: AsyncSession, student_id: UUID) -> List[dict]:
    # score stays hidden until the institute releases results
    res = await session.execute(
        select(ExamSession, ExamRequest)
        .join(ExamRequest, ExamRequest.id == ExamSession.exam_id)
        .where(ExamSession.student_id == student_id, ExamSession.status == ExamSessionStatus.COMPLETED)
        .order_by(ExamSession.submitted_at.desc())
    )
    out = []
    for s, exam in res.all():
        visible = bool(s.results_available)
        out.append({
            'id': s.id,
            'exam_id': exam.id,
            'exam_name': exam.exam_name,
            'handle': exam.published_handle,
            'score': round(s.score, 2) if visible and s.score is not None else None,
            'correct_answers': s.correct_answer_count if visible else None,
            'total_questions': s.total_questions,
            'submitted_at': s.submitted_at,
            'results_available': visible,
        })
    return out


async def get_exam_results(session: AsyncSession, exam_id: UUID, institute_id: Optional[UUID] = None) -> List[dict]:
    exam = await get_exam_request(session, exam_id, institute_id)
    res = await session.execute(
        select(ExamSession, User)
        .outerjoin(User, User.id == ExamSession.student_id)
        .where(ExamSession.exam_id == exam.id)
        .order_by(ExamSession.submitted_at.desc())
    )
    out = []
    for s, student in res.all():
        out.append({
            'id': s.id,
            'student_id': s.student_id,
            'student_name': student.full_name if student else None,
            'student_email': student.email if student else None,
            'status': s.status.value,
            'score': s.score,
            'correct_answers': s.correct_answer_count,
            'total_questions': s.total_questions,
            'submitted_at': s.submitted_at,
            'results_available': s.results_available,
        })
    return out
