"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; keep the app off the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdefghijklmnop")

import pytest
from typing import Generator, List

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from repairdesk.core.email import EmailService
from repairdesk.core.notifications import Notification, NotificationDispatcher, get_dispatcher
from repairdesk.core.rbac import UserRole
from repairdesk.core.security import hash_password, issue_access_token
from repairdesk.core.storage import ImageStorage, get_storage
from repairdesk.db.base import Base
from repairdesk.db.session import enable_sqlite_foreign_keys, get_db
from repairdesk.main import app
# Import all models to ensure they're registered with Base.metadata
from repairdesk.models import *
from repairdesk.models.catalog import Category, Subcategory
from repairdesk.models.user import User
from repairdesk.services.permissions import sync_role_permissions

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

DEFAULT_PASSWORD = "testpass123"


class RecordingDispatcher(NotificationDispatcher):
    """Keeps notifications instead of delivering them."""

    def __init__(self):
        super().__init__(email_service=EmailService())
        self.sent: List[Notification] = []

    def dispatch(self, notification: Notification) -> None:
        self.sent.append(notification)

    def of_kind(self, kind: str) -> List[Notification]:
        return [n for n in self.sent if n.kind == kind]


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session with role permissions seeded."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    sync_role_permissions(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def storage(tmp_path) -> ImageStorage:
    return ImageStorage(str(tmp_path / "storage"))


@pytest.fixture(scope="function")
def client(
    db_session: Session,
    dispatcher: RecordingDispatcher,
    storage: ImageStorage,
) -> Generator[TestClient, None, None]:
    """Create a test client with database, mail and storage overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_storage] = lambda: storage
    # Disable rate limiting during tests to avoid flaky failures
    from repairdesk.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session):
    """Factory creating users with a known password."""
    def _make_user(
        email: str = "user@example.com",
        role: UserRole = UserRole.USER,
        name: str = "Test User",
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password),
            role=role,
            name=name,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user) -> User:
    return make_user()


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(email="admin@example.com", role=UserRole.ADMIN, name="Admin User")


@pytest.fixture
def auth_token(test_user: User) -> str:
    """Get an authentication token for the regular test user."""
    return issue_access_token(test_user.id).token


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return {"Authorization": f"Bearer {issue_access_token(admin_user.id).token}"}


@pytest.fixture
def test_category(db_session: Session) -> Category:
    category = Category(name="Laptops", description="Portable computers")
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def test_subcategory(db_session: Session, test_category: Category) -> Subcategory:
    subcategory = Subcategory(
        category_id=test_category.id,
        name="Gaming laptops",
        description="High performance laptops",
    )
    db_session.add(subcategory)
    db_session.commit()
    db_session.refresh(subcategory)
    return subcategory
