import logging
import secrets
import time
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parkease.core.config import settings
from parkease.core.constants import AuditAction, UserRole, UserType
from parkease.core.security import verify_password
from parkease.models.base import utcnow
from parkease.models.device import Device
from parkease.models.user import User
from parkease.schemas.auth import (
    AuthTokensResponse,
    GuestSignupRequest,
    LoginRequest,
    RefreshTokensResponse,
)
from parkease.schemas.user import UserRead
from parkease.services.audit_service import AuditService
from parkease.services.device_service import DeviceService
from parkease.services.session_service import AuthContext, SessionService
from parkease.utils.errors import (
    AccountDeactivatedError,
    BadRequestError,
    DeviceLimitError,
    InvalidCredentialsError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


class AuthService:

    @staticmethod
    def guest_signup(
        db: Session,
        payload: GuestSignupRequest,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> AuthTokensResponse:
        """
        Create a guest account for a mobile device
        - Guest username, no password, trial window starts now
        - Register the device (first device is primary)
        - Issue a session
        """
        now = utcnow()
        user_uuid = uuid.uuid4()
        user = User(
            id=str(user_uuid),
            username=AuthService._guest_username(),
            full_name=payload.display_name,
            password_hash=None,
            user_type=UserType.GUEST.value,
            role=UserRole.OWNER.value,
            business_id=f"biz_{user_uuid.hex}",
            is_active=True,
            trial_starts_at=now,
            trial_expires_at=now + timedelta(days=settings.TRIAL_DAYS),
            max_devices=settings.DEFAULT_MAX_DEVICES,
            last_login_at=now,
        )
        db.add(user)
        try:
            # Flushed so the device registration below can lock the new row
            db.flush()
            DeviceService.register_or_reactivate(
                db,
                user.id,
                payload.device_id,
                device_name=payload.device_name,
                platform=payload.platform,
                ip_address=ip_address,
                user_agent=user_agent,
                commit=False,
            )
            tokens = SessionService.issue(db, user.id, payload.device_id, ip_address, user_agent, commit=False)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Guest signup on device {payload.device_id} rolled back")
            raise
        db.refresh(user)

        AuditService.record(
            db,
            AuditAction.USER_SIGNUP,
            user_id=user.id,
            entity_type="user",
            entity_id=user.id,
            details={"deviceId": payload.device_id, "userType": user.user_type},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Guest account created: {user.username} on device {payload.device_id}")

        return AuthService._tokens_response(user, tokens)

    @staticmethod
    def login(
        db: Session,
        payload: LoginRequest,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> AuthTokensResponse:
        """
        Username login
        - Guests sign in by username alone, but only from a device already bound to them
        - Everyone else needs a password
        - Enforce the device limit before any token is issued
        """
        username = payload.username.strip().lower()
        user = db.query(User).filter(User.username == username).first()
        if not user:
            raise InvalidCredentialsError()

        if user.is_guest:
            bound = (
                db.query(Device)
                .filter(Device.device_id == payload.device_id, Device.user_id == user.id)
                .first()
            )
            if bound is None:
                logger.warning(f"Guest login for {user.username} refused on unbound device {payload.device_id}")
                raise InvalidCredentialsError("Device not authorized")
        else:
            if not payload.password:
                raise BadRequestError("Password is required", field="password")
            if not user.password_hash or not verify_password(payload.password, user.password_hash):
                raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDeactivatedError()

        user_id = user.id
        try:
            DeviceService.register_or_reactivate(
                db,
                user_id,
                payload.device_id,
                device_name=payload.device_name,
                platform=payload.platform,
                ip_address=ip_address,
                user_agent=user_agent,
                commit=False,
            )

            # Accounts created before business grouping existed
            if not user.business_id:
                user.business_id = f"biz_{uuid.UUID(user_id).hex}"
            if not user.role:
                user.role = UserRole.OWNER.value
            user.last_login_at = utcnow()

            tokens = SessionService.issue(db, user_id, payload.device_id, ip_address, user_agent, commit=False)
            db.commit()
        except DeviceLimitError as exc:
            AuditService.record(
                db,
                AuditAction.DEVICE_LIMIT_REACHED,
                user_id=user_id,
                entity_type="device",
                entity_id=payload.device_id,
                details={"maxDevices": exc.data["maxDevices"], "activeDevices": len(exc.data["currentDevices"])},
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Login for user {user_id} on device {payload.device_id} rolled back")
            raise
        db.refresh(user)

        AuditService.record(
            db,
            AuditAction.USER_LOGIN,
            user_id=user.id,
            entity_type="session",
            entity_id=tokens["session_id"],
            details={"deviceId": payload.device_id},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"User {user.username} logged in on device {payload.device_id}")

        return AuthService._tokens_response(user, tokens)

    @staticmethod
    def refresh(
        db: Session,
        refresh_token: str,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> RefreshTokensResponse:
        tokens = SessionService.refresh(db, refresh_token, ip_address, user_agent)
        AuditService.record(
            db,
            AuditAction.TOKEN_REFRESH,
            entity_type="session",
            entity_id=tokens["session_id"],
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return RefreshTokensResponse(token=tokens["access_token"], refresh_token=tokens["refresh_token"])

    @staticmethod
    def logout(
        db: Session,
        ctx: AuthContext,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> bool:
        invalidated = SessionService.invalidate(db, ctx.session_id, reason="logout")
        AuditService.record(
            db,
            AuditAction.USER_LOGOUT,
            user_id=ctx.user_id,
            entity_type="session",
            entity_id=ctx.session_id,
            details={"deviceId": ctx.device_id},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"User {ctx.user_id} logged out session {ctx.session_id}")
        return invalidated

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError()
        return user

    @staticmethod
    def _guest_username() -> str:
        return f"guest_{int(time.time() * 1000)}{secrets.token_hex(4)}@{settings.GUEST_USERNAME_DOMAIN}"

    @staticmethod
    def _tokens_response(user: User, tokens: dict) -> AuthTokensResponse:
        return AuthTokensResponse(
            user=UserRead.model_validate(user),
            token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            session_id=tokens["session_id"],
        )
