"""Device registry with per-user concurrent-device limit.

Registration locks the owning user row before counting active devices, so on
PostgreSQL two logins for the same user cannot both pass the limit check.
SQLite has no row locks but serialises writers for the whole database.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from parkease.models.base import utcnow
from parkease.models.device import Device
from parkease.models.user import User
from parkease.schemas.device import DeviceRead, DeviceStatusResponse, DeviceSummary, LogoutOthersResponse
from parkease.services.session_service import SessionService
from parkease.utils.errors import DeviceLimitError, UserNotFoundError

logger = logging.getLogger(__name__)


class DeviceService:

    @staticmethod
    def active_devices(db: Session, user_id: str, exclude_device_id: Optional[str] = None) -> list[Device]:
        query = db.query(Device).filter(Device.user_id == user_id, Device.is_active == True)  # noqa: E712
        if exclude_device_id:
            query = query.filter(Device.device_id != exclude_device_id)
        return query.order_by(Device.last_active_at.desc()).all()

    @staticmethod
    def has_room(user: User, active_count: int) -> bool:
        return bool(user.multi_device_enabled) or active_count < user.max_devices

    @staticmethod
    def register_or_reactivate(
        db: Session,
        user_id: str,
        device_id: str,
        device_name: Optional[str] = None,
        platform: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        commit: bool = True,
    ) -> Device:
        """Bind ``device_id`` to the user, creating or reactivating its row.

        A device already active for this user is refreshed without a limit
        check. Anything else (new id, inactive row, row owned by someone else)
        only goes through if the user's other active devices leave room.
        With ``commit=False`` the change is flushed and left for the caller to
        commit, so the user row lock is held until then.
        """
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            db.rollback()
            raise UserNotFoundError()

        now = utcnow()
        device = db.query(Device).filter(Device.device_id == device_id).first()
        already_counted = device is not None and device.user_id == user_id and device.is_active

        if not already_counted:
            others = DeviceService.active_devices(db, user_id, exclude_device_id=device_id)
            if not DeviceService.has_room(user, len(others)):
                current = [
                    DeviceSummary.model_validate(d).model_dump(by_alias=True, mode="json")
                    for d in others
                ]
                max_devices = user.max_devices
                db.rollback()
                logger.info(
                    f"Device limit reached for user {user_id}: {len(others)}/{max_devices} active, "
                    f"rejected device {device_id}"
                )
                raise DeviceLimitError(current_devices=current, max_devices=max_devices)
            first_device = len(others) == 0
        else:
            first_device = False

        if device is None:
            device = Device(
                user_id=user_id,
                device_id=device_id,
                device_name=device_name,
                platform=platform,
                is_active=True,
                is_primary=first_device,
                last_active_at=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.add(device)
        else:
            if device.user_id != user_id:
                logger.info(f"Device {device_id} moved from user {device.user_id} to {user_id}")
                device.user_id = user_id
                device.is_primary = first_device
            device.is_active = True
            device.last_active_at = now
            if device_name:
                device.device_name = device_name
            if platform:
                device.platform = platform
            if ip_address:
                device.ip_address = ip_address
            if user_agent:
                device.user_agent = user_agent

        if commit:
            db.commit()
            db.refresh(device)
        else:
            db.flush()
        return device

    @staticmethod
    def logout_others(
        db: Session,
        user_id: str,
        keep_device_id: str,
        current_session_id: Optional[str] = None,
        current_device_id: Optional[str] = None,
    ) -> LogoutOthersResponse:
        """Deactivate every other device and invalidate every other session.

        The caller's session survives only while it belongs to the kept
        device. Both changes commit together or not at all.
        """
        keep_session_id = current_session_id
        if current_device_id is not None and current_device_id != keep_device_id:
            keep_session_id = None

        try:
            devices_deactivated = (
                db.query(Device)
                .filter(
                    Device.user_id == user_id,
                    Device.device_id != keep_device_id,
                    Device.is_active == True,  # noqa: E712
                )
                .update(
                    {Device.is_active: False, Device.updated_at: utcnow()},
                    synchronize_session="fetch",
                )
            )
            sessions_invalidated = SessionService.invalidate_all_except(
                db, user_id, keep_session_id, reason="logout_others", commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"User {user_id} logged out other devices: "
            f"{devices_deactivated} device(s), {sessions_invalidated} session(s)"
        )
        return LogoutOthersResponse(
            devices_logged_out=devices_deactivated,
            sessions_invalidated=sessions_invalidated,
        )

    @staticmethod
    def status(db: Session, user_id: str) -> DeviceStatusResponse:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise UserNotFoundError()

        devices = (
            db.query(Device)
            .filter(Device.user_id == user_id)
            .order_by(Device.is_active.desc(), Device.last_active_at.desc())
            .all()
        )
        active_count = sum(1 for d in devices if d.is_active)
        return DeviceStatusResponse(
            devices=[DeviceRead.model_validate(d) for d in devices],
            active_devices=active_count,
            max_devices=user.max_devices,
            multi_device_enabled=bool(user.multi_device_enabled),
            can_add_more=DeviceService.has_room(user, active_count),
        )
