import copy
import hashlib
import json
import uuid

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from examvault.db import Base
from examvault.exceptions import UpstreamUnavailableError
from examvault.models.user_model import User, UserRole
from examvault.models import exam_request_model, exam_session_model  # noqa: F401
from examvault.services.content_store import ContentStore
from examvault.services.exam_request_service import decide_exam_request, set_exam_mode, submit_exam_request


class InMemoryContentStore(ContentStore):
    """Content-addressed dict; handles are sha256 of the canonical JSON."""

    def __init__(self):
        self.blobs = {}
        self.fail_publish = False
        self.fail_fetch = False
        self.publish_calls = 0

    async def publish(self, content, name=None):
        self.publish_calls += 1
        if self.fail_publish:
            raise UpstreamUnavailableError("Failed to upload to IPFS: store is down")
        handle = "bafy" + hashlib.sha256(json.dumps(content, sort_keys=True).encode()).hexdigest()
        self.blobs[handle] = copy.deepcopy(content)
        return handle

    async def fetch(self, handle):
        if self.fail_fetch or handle not in self.blobs:
            raise UpstreamUnavailableError("Failed to fetch exam content from all IPFS gateways")
        return copy.deepcopy(self.blobs[handle])


class RecordingNotifier:
    def __init__(self, failing=()):
        self.reviews = []
        self.results = []
        self.failing = set(failing)

    async def notify_review(self, to, **kwargs):
        if to in self.failing:
            raise UpstreamUnavailableError("Failed to send email after 3 attempts: refused")
        self.reviews.append(dict(to=to, **kwargs))

    async def notify_result(self, to, **kwargs):
        if to in self.failing:
            raise UpstreamUnavailableError("Failed to send email after 3 attempts: refused")
        self.results.append(dict(to=to, **kwargs))

    def close(self):
        pass


SAMPLE_BANK = {
    "questions": [
        {"question": "Capital of France?", "options": ["Berlin", "Paris", "Rome", "Madrid"], "correctAnswer": 2},
        {"question": "2 + 2 = ?", "options": ["4", "3", "5", "22"], "correctAnswer": 1},
        {"question": "Largest planet?", "options": ["Mars", "Venus", "Earth", "Jupiter"], "correctAnswer": 4},
    ]
}

# 0-based option indexes that answer every SAMPLE_BANK question correctly
ALL_CORRECT = {"0": 1, "1": 0, "2": 3}


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def store():
    return InMemoryContentStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sample_bank():
    return copy.deepcopy(SAMPLE_BANK)


@pytest.fixture
def bank_bytes(sample_bank):
    return json.dumps(sample_bank).encode("utf-8")


async def make_user(db, role, email=None, full_name=None):
    user = User(
        id=uuid.uuid4(),
        email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        hashed_password="not-a-real-hash",
        full_name=full_name or f"Test {role.value}",
        role=role,
        is_active=True,
        is_verified=True,
        is_superuser=False,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def institute(db):
    return await make_user(db, UserRole.INSTITUTE, "institute@example.com", "Springfield High")


@pytest.fixture
async def admin(db):
    return await make_user(db, UserRole.ADMIN, "admin@example.com", "Admin")


@pytest.fixture
async def student(db):
    return await make_user(db, UserRole.STUDENT, "student@example.com", "Lisa")


@pytest.fixture
async def pending_request(db, institute, bank_bytes):
    return await submit_exam_request(db, institute.id, "Midterm", "General knowledge", bank_bytes, 30)


@pytest.fixture
async def approved_exam(db, store, notifier, admin, pending_request):
    return await decide_exam_request(db, store, notifier, pending_request.id, admin.id, "approved")


@pytest.fixture
async def live_exam(db, institute, approved_exam):
    return await set_exam_mode(db, approved_exam.id, True, institute_id=institute.id)
