"""
Exam request workflow: institute upload -> admin decision -> publication.

Two keys are involved. The at-rest key protects ``encrypted_content`` inside
the database and is only ever used here. On approval the content is
re-encrypted with a fresh key and pinned to the content store; that second key
is what exam sessions use to read the published copy.
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db import utcnow
from ..exceptions import (
    ContentIntegrityError,
    InvalidContentError,
    InvalidTransitionError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from ..models.exam_request_model import ExamRequest, ExamRequestStatus
from ..models.user_model import User
from .cipher_service import DecryptionError, Structured, decrypt_at_rest, encrypt_at_rest, encrypt_for_store, generate_key
from .content_codec import parse_question_bank, validate_questions
from .content_store import ContentStore
from .notification_service import ExamNotifier

logger = logging.getLogger(__name__)


async def get_exam_request(session: AsyncSession, request_id: UUID, institute_id: Optional[UUID] = None) -> ExamRequest:
    stmt = select(ExamRequest).where(ExamRequest.id == request_id)
    if institute_id is not None:
        stmt = stmt.where(ExamRequest.institute_id == institute_id)
    res = await session.execute(stmt)
    exam_request = res.scalar_one_or_none()
    if not exam_request:
        raise NotFoundError("Request not found")
    return exam_request


def _check_time_limit(time_limit_minutes) -> int:
    if time_limit_minutes is None:
        return settings.DEFAULT_TIME_LIMIT_MINUTES
    try:
        minutes = int(time_limit_minutes)
    except (TypeError, ValueError):
        raise ValidationError("Exam duration must be a positive integer (minutes)")
    if minutes <= 0:
        raise ValidationError("Exam duration must be a positive integer (minutes)")
    return minutes


async def submit_exam_request(
    session: AsyncSession,
    institute_id: UUID,
    exam_name: str,
    description: str,
    raw_content: bytes,
    time_limit_minutes: Optional[int] = None,
) -> ExamRequest:
    exam_name = (exam_name or "").strip()
    description = (description or "").strip()
    if not exam_name or not description:
        raise ValidationError("Please provide exam name and description")
    minutes = _check_time_limit(time_limit_minutes)

    # nothing is persisted unless the whole bank validates
    bank = parse_question_bank(raw_content)

    key = generate_key()
    exam_request = ExamRequest(
        institute_id=institute_id,
        exam_name=exam_name,
        description=description,
        time_limit_minutes=minutes,
        status=ExamRequestStatus.PENDING,
        encrypted_content=encrypt_at_rest(bank, key),
        encryption_key=key,
        total_questions=len(bank["questions"]),
    )
    session.add(exam_request)
    await session.commit()
    await session.refresh(exam_request)

    logger.info("Exam request %s submitted by institute %s (%s questions)",
                exam_request.id, institute_id, exam_request.total_questions)
    return exam_request


async def _publish_content(content_store: ContentStore, exam_request: ExamRequest) -> Tuple[str, str]:
    try:
        payload = decrypt_at_rest(exam_request.encrypted_content, exam_request.encryption_key)
    except DecryptionError as e:
        logger.error("Stored content of request %s could not be decrypted: %s", exam_request.id, e)
        raise ContentIntegrityError("Stored exam content could not be decrypted")

    if not isinstance(payload, Structured) or not isinstance(payload.value, dict):
        logger.error("Stored content of request %s is not a JSON document", exam_request.id)
        raise ContentIntegrityError("Stored exam content has an invalid structure")
    try:
        validate_questions(payload.value.get("questions"))
    except InvalidContentError as e:
        logger.error("Stored content of request %s failed validation: %s", exam_request.id, e)
        raise ContentIntegrityError("Stored exam content has an invalid structure")

    published_key = generate_key()
    envelope = encrypt_for_store(payload.value, published_key)
    handle = await content_store.publish(envelope, name=f"exam_{exam_request.id}")
    return handle, published_key


async def _notify_review(session: AsyncSession, notifier: Optional[ExamNotifier], exam_request: ExamRequest):
    if notifier is None:
        return
    institute = await session.get(User, exam_request.institute_id)
    if institute is None or not institute.email:
        logger.warning("No email found for institute %s", exam_request.institute_id)
        return
    try:
        await notifier.notify_review(
            to=institute.email,
            institute_name=institute.full_name,
            exam_name=exam_request.exam_name,
            status=exam_request.status.value,
            feedback=exam_request.reviewer_comment,
            handle=exam_request.published_handle,
        )
    except (UpstreamUnavailableError, ValidationError) as e:
        # the decision is already committed; a lost email must not undo it
        logger.error("Failed to send review email for request %s: %s", exam_request.id, e)


async def decide_exam_request(
    session: AsyncSession,
    content_store: ContentStore,
    notifier: Optional[ExamNotifier],
    request_id: UUID,
    reviewer_id: UUID,
    status: str,
    comment: Optional[str] = None,
) -> ExamRequest:
    """
    Approve or reject a pending request.

    Approval decrypts the at-rest copy, re-encrypts it under a new key and pins
    it to the content store before the request row is updated, so a failed
    upload leaves the request pending.
    """
    try:
        decision = ExamRequestStatus(status)
    except ValueError:
        raise ValidationError("Invalid status")
    if decision == ExamRequestStatus.PENDING:
        raise ValidationError("Invalid status")

    exam_request = await get_exam_request(session, request_id)
    if exam_request.status != ExamRequestStatus.PENDING:
        raise InvalidTransitionError(f"Request has already been {exam_request.status.value}")

    logger.info("Reviewing request %s, decision=%s", exam_request.id, decision.value)
    values = {
        "status": decision,
        "reviewer_comment": comment,
        "reviewed_at": utcnow(),
        "reviewed_by": reviewer_id,
    }
    if decision == ExamRequestStatus.APPROVED:
        handle, published_key = await _publish_content(content_store, exam_request)
        values["published_handle"] = handle
        values["published_key"] = published_key

    # only one reviewer can move the request out of pending
    result = await session.execute(
        update(ExamRequest)
        .where(ExamRequest.id == exam_request.id, ExamRequest.status == ExamRequestStatus.PENDING)
        .values(**values)
    )
    if result.rowcount == 0:
        await session.rollback()
        logger.warning("Request %s was reviewed concurrently, discarding decision", exam_request.id)
        raise InvalidTransitionError("Request has already been reviewed")
    await session.commit()
    await session.refresh(exam_request)

    logger.info("Request %s %s", exam_request.id, decision.value)
    await _notify_review(session, notifier, exam_request)
    return exam_request


async def set_exam_mode(
    session: AsyncSession,
    request_id: UUID,
    enabled: bool,
    institute_id: Optional[UUID] = None,
) -> ExamRequest:
    exam_request = await get_exam_request(session, request_id, institute_id)
    if settings.REQUIRE_APPROVAL_FOR_EXAM_MODE and exam_request.status != ExamRequestStatus.APPROVED:
        raise InvalidTransitionError("Exam mode can only be changed for approved exams")

    if exam_request.exam_mode_enabled != enabled:
        exam_request.exam_mode_enabled = enabled
        session.add(exam_request)
        await session.commit()
        logger.info("Exam mode %s for request %s", "enabled" if enabled else "disabled", exam_request.id)
    return exam_request
