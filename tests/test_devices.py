"""Device registry tests: limit enforcement, reactivation and logout-others."""
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from parkease.models.device import Device
from parkease.services.device_service import DeviceService
from parkease.services.session_service import SessionService
from parkease.utils.errors import DeviceLimitError, SessionInvalidError

PASSWORD = "StrongPassw0rd!"


def _new_device_id():
    return f"device-{uuid.uuid4().hex[:12]}"


def _active_ids(db, user_id):
    db.expire_all()
    return {d.device_id for d in DeviceService.active_devices(db, user_id)}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def _login(client, username, device_id):
    return await client.post(
        "/api/auth/login",
        json={"username": username, "password": PASSWORD, "deviceId": device_id, "deviceName": device_id},
    )


def test_first_device_is_primary(db_session, make_user, device_id):
    user = make_user()
    device = DeviceService.register_or_reactivate(db_session, user.id, device_id, device_name="Pixel", platform="android")
    assert device.is_active is True
    assert device.is_primary is True
    assert device.platform == "android"


def test_limit_rejects_new_device_without_creating_row(db_session, make_user):
    user = make_user(max_devices=1)
    first, second = _new_device_id(), _new_device_id()
    DeviceService.register_or_reactivate(db_session, user.id, first, device_name="Phone A")

    with pytest.raises(DeviceLimitError) as exc_info:
        DeviceService.register_or_reactivate(db_session, user.id, second, device_name="Phone B")

    err = exc_info.value
    assert err.status_code == 403
    assert err.code == "DEVICE_LIMIT_REACHED"
    assert err.data["maxDevices"] == 1
    assert [d["deviceId"] for d in err.data["currentDevices"]] == [first]
    assert err.data["currentDevices"][0]["deviceName"] == "Phone A"
    assert db_session.query(Device).filter(Device.device_id == second).first() is None


def test_reregistering_active_device_is_idempotent(db_session, make_user, device_id):
    user = make_user(max_devices=1)
    DeviceService.register_or_reactivate(db_session, user.id, device_id)
    again = DeviceService.register_or_reactivate(db_session, user.id, device_id, device_name="Renamed")

    assert again.device_name == "Renamed"
    assert again.is_primary is True
    assert db_session.query(Device).filter(Device.device_id == device_id).count() == 1
    assert _active_ids(db_session, user.id) == {device_id}


def test_multi_device_accounts_skip_limit(db_session, make_user):
    user = make_user(max_devices=1, multi_device_enabled=True)
    ids = [_new_device_id() for _ in range(3)]
    for device_id in ids:
        DeviceService.register_or_reactivate(db_session, user.id, device_id)

    assert _active_ids(db_session, user.id) == set(ids)


def test_higher_limit_allows_that_many(db_session, make_user):
    user = make_user(max_devices=2)
    a, b, c = _new_device_id(), _new_device_id(), _new_device_id()
    DeviceService.register_or_reactivate(db_session, user.id, a)
    second = DeviceService.register_or_reactivate(db_session, user.id, b)
    assert second.is_primary is False

    with pytest.raises(DeviceLimitError):
        DeviceService.register_or_reactivate(db_session, user.id, c)


def test_reactivation_respects_limit(db_session, make_user):
    user = make_user(max_devices=1)
    old, new = _new_device_id(), _new_device_id()
    DeviceService.register_or_reactivate(db_session, user.id, old)
    DeviceService.logout_others(db_session, user.id, keep_device_id=new)
    DeviceService.register_or_reactivate(db_session, user.id, new)

    # The deactivated device may not come back while the new one holds the slot
    with pytest.raises(DeviceLimitError):
        DeviceService.register_or_reactivate(db_session, user.id, old)
    assert _active_ids(db_session, user.id) == {new}


def test_device_moves_between_users(db_session, make_user, device_id):
    first_owner = make_user()
    second_owner = make_user()
    DeviceService.register_or_reactivate(db_session, first_owner.id, device_id)

    moved = DeviceService.register_or_reactivate(db_session, second_owner.id, device_id)
    assert moved.user_id == second_owner.id
    assert _active_ids(db_session, first_owner.id) == set()
    assert _active_ids(db_session, second_owner.id) == {device_id}


def test_logout_others_keeps_callers_session(db_session, make_user):
    user = make_user(multi_device_enabled=True)
    mine, other = _new_device_id(), _new_device_id()
    DeviceService.register_or_reactivate(db_session, user.id, mine)
    DeviceService.register_or_reactivate(db_session, user.id, other)
    my_session = SessionService.issue(db_session, user.id, mine)
    other_session = SessionService.issue(db_session, user.id, other)

    result = DeviceService.logout_others(
        db_session, user.id, keep_device_id=mine,
        current_session_id=my_session["session_id"], current_device_id=mine,
    )

    assert result.devices_logged_out == 1
    assert result.sessions_invalidated == 1
    assert _active_ids(db_session, user.id) == {mine}
    assert SessionService.validate(db_session, my_session["access_token"]).device_id == mine
    with pytest.raises(SessionInvalidError):
        SessionService.validate(db_session, other_session["access_token"])


def test_logout_others_is_atomic(db_session, make_user, monkeypatch):
    user = make_user(multi_device_enabled=True)
    mine, other = _new_device_id(), _new_device_id()
    DeviceService.register_or_reactivate(db_session, user.id, mine)
    DeviceService.register_or_reactivate(db_session, user.id, other)

    def boom(*args, **kwargs):
        raise OperationalError("UPDATE user_sessions", {}, Exception("database is locked"))

    monkeypatch.setattr(SessionService, "invalidate_all_except", staticmethod(boom))

    with pytest.raises(OperationalError):
        DeviceService.logout_others(db_session, user.id, keep_device_id=mine)

    assert _active_ids(db_session, user.id) == {mine, other}


def test_status_reports_counts(db_session, make_user):
    user = make_user(max_devices=2)
    DeviceService.register_or_reactivate(db_session, user.id, _new_device_id())

    status = DeviceService.status(db_session, user.id)
    assert status.active_devices == 1
    assert status.max_devices == 2
    assert status.multi_device_enabled is False
    assert status.can_add_more is True
    assert len(status.devices) == 1


async def test_device_limit_handover_via_logout_others(async_client, make_user):
    user = make_user(max_devices=1)
    device_a, device_b = _new_device_id(), _new_device_id()

    r = await _login(async_client, user.username, device_a)
    assert r.status_code == 200
    token_a = r.json()["data"]["token"]

    r = await _login(async_client, user.username, device_b)
    assert r.status_code == 403
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "DEVICE_LIMIT_REACHED"
    assert body["data"]["maxDevices"] == 1
    assert [d["deviceId"] for d in body["data"]["currentDevices"]] == [device_a]

    # Device A hands its slot to device B
    r = await async_client.post(
        "/api/devices/logout-others",
        json={"userId": user.id, "deviceId": device_b},
        headers=_bearer(token_a),
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["devicesLoggedOut"] == 1
    assert data["sessionsInvalidated"] == 1

    r = await _login(async_client, user.username, device_b)
    assert r.status_code == 200
    token_b = r.json()["data"]["token"]

    r = await async_client.get("/api/auth/validate", headers=_bearer(token_a))
    assert r.status_code == 401
    assert r.json()["code"] == "SESSION_INVALID"

    r = await async_client.get("/api/auth/validate", headers=_bearer(token_b))
    assert r.status_code == 200


async def test_logout_others_defaults_to_callers_device(async_client, make_user):
    user = make_user(max_devices=2)
    device_a, device_b = _new_device_id(), _new_device_id()

    token_a = (await _login(async_client, user.username, device_a)).json()["data"]["token"]
    token_b = (await _login(async_client, user.username, device_b)).json()["data"]["token"]

    r = await async_client.post("/api/devices/logout-others", headers=_bearer(token_a))
    assert r.status_code == 200
    assert r.json()["data"]["devicesLoggedOut"] == 1

    assert (await async_client.get("/api/auth/validate", headers=_bearer(token_a))).status_code == 200
    assert (await async_client.get("/api/auth/validate", headers=_bearer(token_b))).status_code == 401


async def test_logout_others_for_another_user_is_forbidden(async_client, make_user, device_id):
    user = make_user()
    token = (await _login(async_client, user.username, device_id)).json()["data"]["token"]

    r = await async_client.post(
        "/api/devices/logout-others",
        json={"userId": str(uuid.uuid4())},
        headers=_bearer(token),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


async def test_logout_others_requires_token(async_client):
    r = await async_client.post("/api/devices/logout-others", json={})
    assert r.status_code == 401
    assert r.json()["code"] == "NO_TOKEN"


async def test_device_status_endpoint(async_client, make_user, device_id):
    user = make_user(max_devices=1)
    token = (await _login(async_client, user.username, device_id)).json()["data"]["token"]

    r = await async_client.get("/api/devices/status", params={"userId": user.id}, headers=_bearer(token))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["activeDevices"] == 1
    assert data["maxDevices"] == 1
    assert data["multiDeviceEnabled"] is False
    assert data["canAddMore"] is False
    assert data["devices"][0]["deviceId"] == device_id
    assert data["devices"][0]["isPrimary"] is True

    r = await async_client.get("/api/devices/status", params={"userId": "someone-else"}, headers=_bearer(token))
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"
