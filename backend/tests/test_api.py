import json

import httpx
import pytest

from examvault.app import app
from examvault.db import get_async_session
from examvault.dependencies import get_content_store, get_notifier
from examvault.models.user_model import UserRole
from examvault.security import current_active_user

from conftest import ALL_CORRECT, make_user


@pytest.fixture
async def as_user(db, store, notifier):
    """Return a factory for an httpx client authenticated as the given user."""
    clients = []

    async def override_session():
        yield db

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_content_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier

    def factory(user):
        app.dependency_overrides[current_active_user] = lambda: user
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield factory
    app.dependency_overrides.clear()
    for client in clients:
        await client.aclose()


def upload_files(bank):
    return {"file": ("bank.json", json.dumps(bank).encode(), "application/json")}


async def test_upload_and_list(as_user, institute, sample_bank):
    client = as_user(institute)
    resp = await client.post(
        "/api/uploads",
        files=upload_files(sample_bank),
        data={"exam_name": "Midterm", "description": "General knowledge", "exam_duration": "45"},
    )
    assert resp.status_code == 201
    assert resp.json()["total_questions"] == 3

    resp = await client.get("/api/uploads/mine")
    assert resp.status_code == 200
    rows = resp.json()
    assert rows[0]["exam_name"] == "Midterm"
    assert rows[0]["time_limit_minutes"] == 45
    assert rows[0]["status"] == "pending"
    assert "encryption_key" not in rows[0]


async def test_upload_details_are_private_to_the_owner(as_user, db, institute, pending_request):
    resp = await as_user(institute).get(f"/api/uploads/{pending_request.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == str(pending_request.id)
    assert body["exam_name"] == "Midterm"
    assert body["institute_name"] == "Springfield High"
    assert "encrypted_content" not in body
    assert "encryption_key" not in body
    assert pending_request.encryption_key not in resp.text

    other = await make_user(db, UserRole.INSTITUTE, "other@example.com")
    resp = await as_user(other).get(f"/api/uploads/{pending_request.id}")
    assert resp.status_code == 404


async def test_invalid_upload_names_the_question(as_user, institute, sample_bank):
    sample_bank["questions"][1]["correctAnswer"] = 7
    resp = await as_user(institute).post(
        "/api/uploads",
        files=upload_files(sample_bank),
        data={"exam_name": "Midterm", "description": "desc"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Question 2 has invalid correct answer index (must be 1-4)"
    assert resp.json()["question"] == 2


async def test_upload_rejects_non_json_filename(as_user, institute):
    resp = await as_user(institute).post(
        "/api/uploads",
        files={"file": ("bank.xlsx", b"PK", "application/octet-stream")},
        data={"exam_name": "Midterm", "description": "desc"},
    )
    assert resp.status_code == 400


async def test_role_gates(as_user, student, institute):
    resp = await as_user(student).get("/api/admin/requests")
    assert resp.status_code == 403
    resp = await as_user(institute).get("/api/student/exams")
    assert resp.status_code == 403


async def test_end_to_end(as_user, admin, institute, student, sample_bank, notifier):
    inst = as_user(institute)
    resp = await inst.post(
        "/api/uploads",
        files=upload_files(sample_bank),
        data={"exam_name": "Midterm", "description": "desc", "exam_duration": "30"},
    )
    request_id = resp.json()["request_id"]

    adm = as_user(admin)
    resp = await adm.put(f"/api/admin/requests/{request_id}", json={"status": "approved", "comment": "ok"})
    assert resp.status_code == 200
    handle = resp.json()["request"]["handle"]
    assert handle

    resp = await adm.get("/api/admin/dashboard")
    assert resp.json() == {"total": 1, "pending": 0, "approved": 1, "rejected": 0}

    stud = as_user(student)
    resp = await stud.get(f"/api/exams/check-mode/{handle}")
    assert resp.json()["exam_mode"] is False
    resp = await stud.post("/api/exams/start", json={"handle": handle})
    assert resp.status_code == 400

    inst = as_user(institute)
    resp = await inst.put(f"/api/exams/{request_id}/exam-mode", json={"exam_mode": True})
    assert resp.status_code == 200
    assert resp.json()["exam_mode_enabled"] is True

    stud = as_user(student)
    resp = await stud.get("/api/student/exams")
    assert [e["handle"] for e in resp.json()] == [handle]

    resp = await stud.post("/api/exams/start", json={"handle": handle})
    assert resp.status_code == 200
    started = resp.json()
    assert len(started["questions"]) == 3
    assert "correctAnswer" not in json.dumps(started)

    resp = await stud.post("/api/exams/submit", json={"session_id": started["session_id"], "answers": ALL_CORRECT})
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert "score" not in resp.json()

    resp = await stud.post("/api/exams/submit", json={"session_id": started["session_id"], "answers": ALL_CORRECT})
    assert resp.status_code == 409

    resp = await stud.get("/api/student/results")
    assert resp.json()[0]["score"] is None

    inst = as_user(institute)
    resp = await inst.post(f"/api/exams/release/{request_id}")
    assert resp.status_code == 200
    assert resp.json()["released"] is True
    assert resp.json()["notified_count"] == 1

    resp = await inst.get(f"/api/exams/results/{request_id}")
    assert resp.json()[0]["student_email"] == student.email

    stud = as_user(student)
    resp = await stud.get("/api/student/results")
    assert resp.json()[0]["score"] == 100.0
    assert notifier.results[0]["to"] == student.email


async def test_error_mapping(as_user, student, live_exam, store):
    client = as_user(student)
    resp = await client.post("/api/exams/start", json={"handle": "bafy-unknown"})
    assert resp.status_code == 404

    store.fail_fetch = True
    resp = await client.post("/api/exams/start", json={"handle": live_exam.published_handle})
    assert resp.status_code == 503

    store.fail_fetch = False
    resp = await client.post("/api/exams/start", json={"handle": live_exam.published_handle})
    assert resp.status_code == 200


async def test_second_decision_conflicts(as_user, admin, pending_request):
    client = as_user(admin)
    resp = await client.put(f"/api/admin/requests/{pending_request.id}", json={"status": "rejected"})
    assert resp.status_code == 200
    resp = await client.put(f"/api/admin/requests/{pending_request.id}", json={"status": "approved"})
    assert resp.status_code == 409
    resp = await client.put(f"/api/admin/requests/{pending_request.id}", json={"status": "maybe"})
    assert resp.status_code == 400
