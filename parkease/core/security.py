from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
import secrets
import hashlib
from parkease.core.config import settings
from parkease.core.constants import TokenType
from parkease.utils.errors import InvalidTokenError, TokenExpiredError

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)
def hash_password(password: str) -> str:
    if not password or not isinstance(password, str):
        raise ValueError("Password must be a non-empty string")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    if not isinstance(plain_password, str):
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        return False

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _secret_key() -> str:
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured. Set it in the environment or .env file.")
    return settings.SECRET_KEY


def _create_jwt(payload: Dict[str, Any], expires_delta: timedelta) -> tuple[str, str]:
    expire = datetime.now(timezone.utc) + expires_delta
    jti = secrets.token_urlsafe(32)

    payload.update({
        "exp": expire,
        "jti": jti,
    })

    token = jwt.encode(
        payload,
        _secret_key(),
        algorithm=settings.ALGORITHM,
    )
    return token, jti


def _session_claims(user_id: str, device_id: str, session_id: str, token_type: TokenType) -> Dict[str, Any]:
    return {
        "sub": str(user_id),
        "device_id": device_id,
        "session_id": session_id,
        "type": token_type.value,
    }


def create_access_token(
    user_id: str,
    device_id: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str]:
    return _create_jwt(
        payload=_session_claims(user_id, device_id, session_id, TokenType.ACCESS),
        expires_delta=expires_delta
        or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
    )


def create_refresh_token(
    user_id: str,
    device_id: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str]:
    return _create_jwt(
        payload=_session_claims(user_id, device_id, session_id, TokenType.REFRESH),
        expires_delta=expires_delta
        or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_token_pair(user_id: str, device_id: str, session_id: str) -> tuple[str, str]:
    """Return ``(access_token, refresh_token)`` bound to one session."""
    access_token, _ = create_access_token(user_id, device_id, session_id)
    refresh_token, _ = create_refresh_token(user_id, device_id, session_id)
    return access_token, refresh_token


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry.

    Raises ``TokenExpiredError`` for an expired signature and
    ``InvalidTokenError`` for anything else that fails verification.
    """
    try:
        return jwt.decode(
            token,
            _secret_key(),
            algorithms=[settings.ALGORITHM],
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()


def decode_refresh_token(token: str) -> Dict[str, Any]:
    payload = decode_token(token)
    if payload.get("type") != TokenType.REFRESH.value:
        raise InvalidTokenError("Invalid refresh token")
    return payload
