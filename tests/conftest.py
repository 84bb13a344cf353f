"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Users, projects and reports built through the service layer
- HTTPX AsyncClient with session cookie and CSRF header
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Must be set before any feedloop import reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from feedloop.core.config import settings
from feedloop.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from feedloop.core.rate_limit import FixedWindowRateLimiter, get_auth_rate_limiter, limiter
from feedloop.core.security import create_session_token
from feedloop.db.base import Base
from feedloop.db.models import Project, Report, User
from feedloop.db.session import SessionLocal, engine
from feedloop.main import app
from feedloop.services import auth_service, project_service, report_service

TEST_PASSWORD = "Password123"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Session over a freshly created schema, dropped after the test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch):
    """Attachments go to a per-test directory."""
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path / "storage"))
    return tmp_path / "storage"


@pytest.fixture(autouse=True)
def reset_route_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def auth_limiter() -> FixedWindowRateLimiter:
    """Login/registration throttle generous enough not to interfere."""
    return FixedWindowRateLimiter.create(window_ms=60_000, max_requests=1000)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make_user(email: str | None = None, first_name: str = "Test", last_name: str = "User") -> User:
        user = auth_service.create_user(
            db,
            email=email or f"user-{uuid.uuid4().hex[:8]}@test.com",
            password=TEST_PASSWORD,
            first_name=first_name,
            last_name=last_name,
            email_verified=True,
        )
        db.commit()
        return user

    return _make_user


@pytest.fixture
def test_user(make_user) -> User:
    return make_user(email="owner@test.com", first_name="Olivia", last_name="Owner")


@pytest.fixture
def test_project(db: Session, test_user: User) -> Project:
    return project_service.create_project(db, test_user, "Test Project")


@pytest.fixture
def make_report(db: Session) -> Callable[..., Report]:
    def _make_report(project: Project, **overrides) -> Report:
        fields = {
            "title": "Checkout button does nothing",
            "description": "Clicking checkout has no effect",
            "report_type": "bug",
            "priority": "medium",
            "reporter_name": None,
            "reporter_email": None,
        }
        fields.update(overrides)
        report = report_service.create_report(db, project, **fields)
        db.commit()
        return report

    return _make_report


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture
def test_auth(test_user: User) -> TestAuth:
    return TestAuth(user=test_user, token=create_session_token(test_user.id, test_user.token_version))


def auth_cookies(user: User) -> dict[str, str]:
    return {COOKIE_NAME: create_session_token(user.id, user.token_version)}


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def override_deps(db: Session, auth_limiter: FixedWindowRateLimiter):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_rate_limiter] = lambda: auth_limiter
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_deps) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client for public endpoints."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def authed_client(override_deps, test_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Client with the owner's session cookie and the CSRF header."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    ) as c:
        yield c


@pytest.fixture
def client_for(override_deps):
    """Factory for authenticated clients acting as another user."""
    def _client_for(user: User) -> AsyncClient:
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=auth_cookies(user),
            headers={CSRF_HEADER: CSRF_HEADER_VALUE},
        )

    return _client_for
