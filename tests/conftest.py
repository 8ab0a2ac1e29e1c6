"""
Pytest fixtures for the IMS API tests.

Provides an in-memory database, a FastAPI test client wired to it, and
ready-made users/tokens for each role.
"""
import os
import tempfile

# Settings are read at import time; configure before importing ims
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["SEED_DEFAULT_USERS"] = "false"
os.environ["HOLIDAY_SYNC_ENABLED"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TZ_DEFAULT"] = "Asia/Seoul"
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "ims-test-uploads"))

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ims.auth.security import create_access_token, get_password_hash
from ims.db import Base, enable_sqlite_foreign_keys, get_db
from ims.main import app
from ims.models.models import User
from ims.storage.local_provider import LocalStorageProvider, get_storage


test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
enable_sqlite_foreign_keys(test_engine)
TestingSessionLocal = sessionmaker(bind=test_engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema for each test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "uploads"))


@pytest.fixture(scope="function")
def client(db_session, storage):
    """Test client; startup hooks are not run (no `with` block)."""

    def _get_db():
        s = TestingSessionLocal()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(session, username, role="user", approval_status="approved", password=None):
    u = User(
        username=username,
        display_name=username.title(),
        password_hash=get_password_hash(password or username),
        role=role,
        approval_status=approval_status,
        approved_at=datetime.utcnow() if approval_status == "approved" else None,
    )
    session.add(u)
    session.commit()
    return u


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture(scope="function")
def admin_user(db_session):
    return make_user(db_session, "admin", role="admin")


@pytest.fixture(scope="function")
def manager_user(db_session):
    return make_user(db_session, "manager", role="manager")


@pytest.fixture(scope="function")
def normal_user(db_session):
    return make_user(db_session, "user", role="user")


@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope="function")
def manager_headers(manager_user):
    return auth_headers(manager_user)


@pytest.fixture(scope="function")
def user_headers(normal_user):
    return auth_headers(normal_user)


def contract_payload(**overrides):
    payload = {
        "customer_name": "Acme Corp",
        "project_title": "Security Maintenance",
        "project_type": "maintenance",
        "start_date": "2025-01-15",
        "end_date": "2025-12-31",
        "notes": "",
        "items": [
            {
                "category": "HW",
                "item": "Firewall",
                "product": "FW-1000",
                "qty": 2,
                "cycle": "month",
                "engineer": {"main": {"name": "Kim", "phone": "010-1111-2222"}},
                "details": [
                    {"content": "PSU", "qty": "2", "unit": ""},
                    {"content": "  ", "qty": ""},
                ],
            },
            {"category": "SW", "item": "SIEM", "product": "LogBox", "qty": 1, "cycle": "quarter"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope="function")
def user_factory(db_session):
    def _make(username, **kwargs):
        return make_user(db_session, username, **kwargs)

    return _make


@pytest.fixture(scope="function")
def new_contract():
    """Factory for a valid contract payload with two assets."""
    return contract_payload
