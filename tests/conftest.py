"""Pytest fixtures for async FastAPI testing.

Loads `.env.test` before any application module reads settings, initializes a
clean SQLite test database, and provides an `AsyncClient` for integration
tests plus a factory for seeding accounts directly.
"""
import pathlib
import uuid

import pytest
from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=str(ROOT / ".env.test"), override=True)

DEFAULT_PASSWORD = "StrongPassw0rd!"


@pytest.fixture(scope="session")
def prepare_database():
    """Create clean schema for the test session."""
    from parkease.core.database import engine, Base

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(prepare_database):
    """Yield a SQLAlchemy session for direct DB access in tests."""
    from parkease.core.database import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(db_session):
    """Factory for accounts that skip the signup flow."""
    from parkease.core.security import hash_password
    from parkease.models.user import User

    def _make_user(user_type="premium", password=DEFAULT_PASSWORD, **overrides):
        fields = {
            "username": f"user_{uuid.uuid4().hex[:12]}",
            "full_name": "Test User",
            "password_hash": hash_password(password) if password else None,
            "user_type": user_type,
            "role": "owner",
            "is_active": True,
            "max_devices": 1,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def device_id():
    """Fresh device id; device ids are globally unique."""
    return f"device-{uuid.uuid4().hex[:12]}"


@pytest.fixture
async def async_client(prepare_database):
    """Provide an httpx AsyncClient configured with the FastAPI app."""
    from httpx import ASGITransport, AsyncClient
    from parkease.main import create_app

    app = create_app()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
