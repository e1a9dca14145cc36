"""Session and token lifecycle.

The ``user_sessions`` table is the only authority on whether an issued token
pair is still usable. Tokens are signed JWTs; the table stores SHA-256 hashes
of both tokens, a validity flag and expiry stamps. A token whose signature is
fine but whose session row is missing, invalid, expired or superseded by a
refresh is rejected.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parkease.core.config import settings
from parkease.core.constants import TokenType
from parkease.core.security import create_token_pair, decode_refresh_token, decode_token, hash_token
from parkease.models.base import utcnow
from parkease.models.session import UserSession
from parkease.models.user import User
from parkease.utils.errors import (
    AccountDeactivatedError,
    InvalidTokenError,
    InvalidTokenTypeError,
    NoTokenError,
    SessionInvalidError,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """Identity carried by a validated access token."""
    user_id: str
    device_id: str
    session_id: str
    trial_warning: Optional[dict] = None


class SessionService:

    @staticmethod
    def build_session_id(user_id: str, device_id: str) -> str:
        # Nanosecond clock plus a random suffix: repeated logins never collide
        return f"{user_id}_{device_id}_{time.time_ns()}_{secrets.token_hex(4)}"

    @staticmethod
    def issue(
        db: Session,
        user_id: str,
        device_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        commit: bool = True,
    ) -> dict:
        """Issue an access/refresh pair and persist its session row.

        Fails closed: if the row cannot be written the error propagates and no
        token leaves the server. With ``commit=False`` the row is only flushed
        and the caller commits it together with its own changes.
        """
        session_id = SessionService.build_session_id(user_id, device_id)
        access_token, refresh_token = create_token_pair(user_id, device_id, session_id)

        now = utcnow()
        record = UserSession(
            session_id=session_id,
            user_id=user_id,
            device_id=device_id,
            access_token_hash=hash_token(access_token),
            refresh_token_hash=hash_token(refresh_token),
            is_valid=True,
            expires_at=now + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
            refresh_expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            created_at=now,
            last_activity_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(record)
        try:
            if commit:
                db.commit()
            else:
                db.flush()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to persist session {session_id} for user {user_id}")
            raise

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "session_id": session_id,
        }

    @staticmethod
    def validate(db: Session, token: Optional[str]) -> AuthContext:
        """Validate a bearer access token against its session row."""
        if not token:
            raise NoTokenError()

        payload = decode_token(token)

        token_type = payload.get("type")
        if token_type == TokenType.REFRESH.value:
            raise InvalidTokenTypeError()
        if token_type != TokenType.ACCESS.value:
            raise InvalidTokenError()

        user_id = payload.get("sub")
        device_id = payload.get("device_id")
        session_id = payload.get("session_id")
        if not user_id or not device_id or not session_id:
            raise InvalidTokenError("Invalid token payload")

        session = db.query(UserSession).filter(UserSession.session_id == session_id).first()
        now = utcnow()
        if (
            session is None
            or not session.is_valid
            or session.expires_at <= now
            or session.user_id != user_id
            or session.access_token_hash != hash_token(token)
        ):
            raise SessionInvalidError()

        session.last_activity_at = now
        db.commit()

        return AuthContext(user_id=user_id, device_id=device_id, session_id=session_id)

    @staticmethod
    def refresh(
        db: Session,
        refresh_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """Rotate the token pair of an existing session.

        The session id is kept; both hashes and expiries are replaced, so the
        previous access and refresh tokens stop working.
        """
        payload = decode_refresh_token(refresh_token)
        user_id = payload.get("sub")
        device_id = payload.get("device_id")
        session_id = payload.get("session_id")
        if not user_id or not device_id or not session_id:
            raise InvalidTokenError("Invalid refresh token")

        session = db.query(UserSession).filter(UserSession.session_id == session_id).first()
        now = utcnow()
        if session is None or not session.is_valid or session.user_id != user_id:
            raise SessionInvalidError()

        if session.refresh_expires_at and session.refresh_expires_at <= now:
            SessionService._mark_invalid(session, now, "refresh_expired")
            db.commit()
            raise SessionInvalidError()

        if session.refresh_token_hash != hash_token(refresh_token):
            # An older refresh token from this session was replayed
            SessionService._mark_invalid(session, now, "refresh_reuse")
            db.commit()
            logger.warning(f"Refresh token reuse detected for session {session_id}; session invalidated")
            raise SessionInvalidError()

        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            SessionService._mark_invalid(session, now, "account_inactive")
            db.commit()
            raise AccountDeactivatedError()

        access_token, new_refresh_token = create_token_pair(user_id, device_id, session_id)
        session.access_token_hash = hash_token(access_token)
        session.refresh_token_hash = hash_token(new_refresh_token)
        session.expires_at = now + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
        session.refresh_expires_at = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        session.last_activity_at = now
        if ip_address:
            session.ip_address = ip_address
        if user_agent:
            session.user_agent = user_agent
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to rotate tokens for session {session_id}")
            raise

        return {
            "access_token": access_token,
            "refresh_token": new_refresh_token,
            "session_id": session_id,
        }

    @staticmethod
    def invalidate(db: Session, session_id: str, reason: str = "logout") -> bool:
        """Invalidate one session. Returns False if it was unknown or already invalid."""
        session = (
            db.query(UserSession)
            .filter(UserSession.session_id == session_id, UserSession.is_valid == True)  # noqa: E712
            .first()
        )
        if session is None:
            return False
        SessionService._mark_invalid(session, utcnow(), reason)
        db.commit()
        return True

    @staticmethod
    def invalidate_all(db: Session, user_id: str, reason: str = "logout_all", commit: bool = True) -> int:
        return SessionService._invalidate_where(
            db,
            [UserSession.user_id == user_id],
            reason,
            commit,
        )

    @staticmethod
    def invalidate_all_except(
        db: Session,
        user_id: str,
        keep_session_id: Optional[str],
        reason: str = "logout_others",
        commit: bool = True,
    ) -> int:
        criteria = [UserSession.user_id == user_id]
        if keep_session_id:
            criteria.append(UserSession.session_id != keep_session_id)
        return SessionService._invalidate_where(db, criteria, reason, commit)

    @staticmethod
    def sweep(db: Session, now=None) -> int:
        """Delete sessions past their refresh window and long-dead invalid ones.

        Valid sessions still inside their window are never touched.
        """
        now = now or utcnow()
        cutoff = now - timedelta(days=settings.SESSION_RETENTION_DAYS)

        expired = or_(
            UserSession.refresh_expires_at < now,
            and_(UserSession.refresh_expires_at.is_(None), UserSession.expires_at < now),
        )
        stale_invalid = and_(
            UserSession.is_valid == False,  # noqa: E712
            or_(
                UserSession.invalidated_at < cutoff,
                and_(UserSession.invalidated_at.is_(None), UserSession.created_at < cutoff),
            ),
        )

        deleted = (
            db.query(UserSession)
            .filter(or_(expired, stale_invalid))
            .delete(synchronize_session="fetch")
        )
        db.commit()
        if deleted:
            logger.info(f"Session sweep removed {deleted} row(s)")
        return deleted

    @staticmethod
    def _mark_invalid(session: UserSession, now, reason: str) -> None:
        session.is_valid = False
        session.invalidated_at = now
        session.invalidated_reason = reason

    @staticmethod
    def _invalidate_where(db: Session, criteria: list, reason: str, commit: bool) -> int:
        count = (
            db.query(UserSession)
            .filter(UserSession.is_valid == True, *criteria)  # noqa: E712
            .update(
                {
                    UserSession.is_valid: False,
                    UserSession.invalidated_at: utcnow(),
                    UserSession.invalidated_reason: reason,
                },
                synchronize_session="fetch",
            )
        )
        if commit:
            db.commit()
        return count
