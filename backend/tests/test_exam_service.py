import pytest

from examvault.exceptions import NotFoundError
from examvault.models.user_model import UserRole
from examvault.services.exam_request_service import decide_exam_request, set_exam_mode, submit_exam_request
from examvault.services.exam_service import (
    check_exam_mode,
    dashboard_stats,
    list_available_exams,
    list_exam_requests,
    list_institute_uploads,
)
from examvault.services.session_service import start_exam_session

from conftest import make_user


async def test_dashboard_counts(db, store, notifier, admin, institute, bank_bytes):
    reqs = [await submit_exam_request(db, institute.id, f"Exam {i}", "desc", bank_bytes) for i in range(4)]
    await decide_exam_request(db, store, notifier, reqs[0].id, admin.id, "approved")
    await decide_exam_request(db, store, notifier, reqs[1].id, admin.id, "rejected")

    assert await dashboard_stats(db) == {"total": 4, "pending": 2, "approved": 1, "rejected": 1}


async def test_dashboard_empty(db):
    assert await dashboard_stats(db) == {"total": 0, "pending": 0, "approved": 0, "rejected": 0}


async def test_request_listing_never_exposes_content_or_keys(db, institute, pending_request):
    rows = await list_exam_requests(db)
    assert len(rows) == 1
    row = rows[0]
    assert row["exam_name"] == "Midterm"
    assert row["institute_name"] == "Springfield High"
    assert row["institute_email"] == "institute@example.com"
    assert row["status"] == "pending"
    for secret in ("encrypted_content", "encryption_key", "published_key"):
        assert secret not in row
    assert pending_request.encryption_key not in repr(row)


async def test_institute_sees_only_its_uploads(db, institute, pending_request, bank_bytes):
    other = await make_user(db, UserRole.INSTITUTE, "other@example.com")
    await submit_exam_request(db, other.id, "Other exam", "desc", bank_bytes)

    mine = await list_institute_uploads(db, institute.id)
    assert [r["exam_name"] for r in mine] == ["Midterm"]


async def test_available_exams_excludes_pending_and_attempted(db, store, notifier, admin, institute, student, live_exam, bank_bytes):
    await submit_exam_request(db, institute.id, "Still pending", "desc", bank_bytes)

    available = await list_available_exams(db, student.id)
    assert [e["exam_name"] for e in available] == ["Midterm"]
    assert available[0]["handle"] == live_exam.published_handle
    assert available[0]["total_questions"] == 3
    assert "published_key" not in available[0]

    await start_exam_session(db, store, student.id, live_exam.published_handle)
    assert await list_available_exams(db, student.id) == []


async def test_check_exam_mode(db, institute, approved_exam):
    status = await check_exam_mode(db, approved_exam.published_handle)
    assert status["exam_mode"] is False

    await set_exam_mode(db, approved_exam.id, True, institute_id=institute.id)
    status = await check_exam_mode(db, approved_exam.published_handle)
    assert status == {"exam_mode": True, "message": "Exam is ready to start"}


async def test_check_exam_mode_unknown_handle(db):
    with pytest.raises(NotFoundError):
        await check_exam_mode(db, "bafy-nope")
