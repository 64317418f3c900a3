"""
Shared fixtures: in-memory SQLite database, API client and a scripted LLM provider.

Settings are read from the environment at import time, so they are set here
before anything from toeic_api is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["LOG_TO_FILE"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "1"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("SMTP_HOST", None)
os.environ.pop("GOOGLE_CLIENT_ID", None)

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import toeic_api.db.models  # noqa: F401  (registers every table)
from toeic_api.core.cache import billing_cache
from toeic_api.core.rate_limit import limiter
from toeic_api.core.security import create_access_token, hash_password
from toeic_api.db.base import Base
from toeic_api.db.models.user import User
from toeic_api.db.session import get_db
from toeic_api.llm.provider import LLMProvider, LLMResponse
from toeic_api.llm.router import get_llm_provider
from toeic_api.main import app
from toeic_api.services.notification_service import stats as notification_stats


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeProvider(LLMProvider):
    """Returns queued replies in order and records every call."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs) -> LLMResponse:
        self.calls.append({"messages": messages, "model": model, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        content = self.replies.pop(0) if self.replies else ""
        return LLMResponse(content=content, tokens_in=10, tokens_out=20, model=model)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(db, fake_provider):
    """API client bound to the test database and the fake provider."""
    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_provider] = lambda: fake_provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_process_state():
    """Rate-limit counters, the billing cache and send stats are process-wide."""
    limiter.reset()
    billing_cache.clear()
    notification_stats.reset()
    yield
    limiter.reset()
    billing_cache.clear()


def make_user(db, email="learner@example.com", password="testpass123", **fields) -> User:
    user = User(
        email=email,
        name=fields.pop("name", "Test Learner"),
        password_hash=hash_password(password),
        **fields
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def test_user(db):
    """A free-plan user."""
    return make_user(db)


@pytest.fixture
def trial_user(db):
    """A user inside an active trial."""
    now = datetime.utcnow()
    return make_user(
        db,
        email="trial@example.com",
        trial_started_at=now,
        trial_expires_at=now + timedelta(days=3),
        has_used_trial=True,
        trial_email="trial@example.com",
    )


@pytest.fixture
def admin_user(db):
    return make_user(db, email="admin@example.com", role="admin", email_verified=True)
