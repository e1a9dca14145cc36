"""App-level behaviour: health, error envelope, rate limiting, store outages, background sweep."""
import time
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from parkease.core.config import settings
from parkease.core.constants import AuditAction
from parkease.dependencies import rate_limit as rate_limit_module
from parkease.models.base import utcnow
from parkease.models.device import Device
from parkease.models.session import UserSession
from parkease.models.user import User
from parkease.services.audit_service import AuditService
from parkease.services.auth_service import AuthService
from parkease.services.session_service import SessionService


@pytest.fixture
def fresh_buckets():
    rate_limit_module._buckets.clear()
    yield
    rate_limit_module._buckets.clear()


async def test_health(async_client):
    r = await async_client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["timestamp"]


async def test_unknown_route_uses_error_envelope(async_client):
    r = await async_client.get("/api/does-not-exist")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"]


async def test_rate_limit_returns_429(async_client, monkeypatch, fresh_buckets):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
    monkeypatch.setattr(settings, "RATE_LIMIT_PERIOD_SECONDS", 60)

    for _ in range(2):
        r = await async_client.post("/api/auth/refresh", json={"refreshToken": "garbage"})
        assert r.status_code == 401

    r = await async_client.post("/api/auth/refresh", json={"refreshToken": "garbage"})
    assert r.status_code == 429
    assert r.json()["code"] == "RATE_LIMITED"
    assert int(r.headers["Retry-After"]) >= 1


async def test_rate_limit_ignores_forwarded_for(async_client, monkeypatch, fresh_buckets):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
    monkeypatch.setattr(settings, "RATE_LIMIT_PERIOD_SECONDS", 60)

    codes = []
    for i in range(4):
        r = await async_client.post(
            "/api/auth/refresh",
            json={"refreshToken": "garbage"},
            headers={"X-Forwarded-For": f"203.0.113.{i}"},
        )
        codes.append(r.status_code)

    assert codes == [401, 401, 429, 429]
    assert len(rate_limit_module._buckets) == 1


async def test_rate_limit_forgets_idle_clients(async_client, monkeypatch, fresh_buckets):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_PERIOD_SECONDS", 60)
    idle_key = "198.51.100.7:/api/auth/login"
    rate_limit_module._buckets[idle_key].append(time.time() - 3600)

    r = await async_client.post("/api/auth/refresh", json={"refreshToken": "garbage"})
    assert r.status_code == 401
    assert idle_key not in rate_limit_module._buckets
    assert len(rate_limit_module._buckets) == 1


async def test_store_timeout_maps_to_503(async_client, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT users", {}, Exception("canceling statement due to statement timeout"))

    monkeypatch.setattr(AuthService, "login", staticmethod(unavailable))

    r = await async_client.post(
        "/api/auth/login",
        json={"username": "someone", "password": "StrongPassw0rd!", "deviceId": "device-503"},
    )
    assert r.status_code == 503
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "STORE_UNAVAILABLE"
    assert r.headers["Retry-After"] == "5"


def _session_store_down(*args, **kwargs):
    raise OperationalError("INSERT INTO user_sessions", {}, Exception("database is locked"))


async def test_session_write_failure_returns_no_token(async_client, monkeypatch, device_id, db_session):
    users_before = db_session.query(User).count()
    monkeypatch.setattr(SessionService, "issue", staticmethod(_session_store_down))

    r = await async_client.post("/api/auth/guest-signup", json={"deviceId": device_id})
    assert r.status_code == 503
    assert "data" not in r.json()

    # Neither the guest account nor its device outlives the failed signup
    db_session.expire_all()
    assert db_session.query(User).count() == users_before
    assert db_session.query(Device).filter(Device.device_id == device_id).first() is None


async def test_login_session_write_failure_keeps_device_slot_free(async_client, monkeypatch, make_user, db_session):
    user = make_user(max_devices=1)
    failed_device = f"device-{uuid.uuid4().hex[:12]}"
    next_device = f"device-{uuid.uuid4().hex[:12]}"
    credentials = {"username": user.username, "password": "StrongPassw0rd!"}

    monkeypatch.setattr(SessionService, "issue", staticmethod(_session_store_down))
    r = await async_client.post("/api/auth/login", json={**credentials, "deviceId": failed_device})
    assert r.status_code == 503
    monkeypatch.undo()

    db_session.expire_all()
    assert db_session.query(Device).filter(Device.device_id == failed_device).first() is None
    assert db_session.query(User).filter(User.id == user.id).first().last_login_at is None

    r = await async_client.post("/api/auth/login", json={**credentials, "deviceId": next_device})
    assert r.status_code == 200
    assert r.json()["data"]["token"]


def test_audit_failure_does_not_raise():
    db = MagicMock()
    db.commit.side_effect = OperationalError("INSERT INTO audit_logs", {}, Exception("disk full"))

    assert AuditService.record(db, AuditAction.USER_LOGIN, user_id="u1") is False
    db.rollback.assert_called_once()


def test_sweep_task_runs_against_store(db_session, make_user, device_id):
    from parkease.core.celery_app import celery_app
    from parkease.tasks.session_tasks import sweep_expired_sessions

    schedule = celery_app.conf.beat_schedule["sweep-expired-sessions"]
    assert schedule["task"] == sweep_expired_sessions.name
    assert schedule["schedule"] == float(settings.SESSION_SWEEP_INTERVAL_SECONDS)

    user = make_user()
    issued = SessionService.issue(db_session, user.id, device_id)
    row = db_session.query(UserSession).filter(UserSession.session_id == issued["session_id"]).first()
    row.refresh_expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    deleted = sweep_expired_sessions.apply().get()
    assert deleted >= 1

    db_session.expire_all()
    assert db_session.query(UserSession).filter(UserSession.session_id == issued["session_id"]).first() is None
