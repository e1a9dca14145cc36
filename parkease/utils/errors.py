"""Custom error definitions for API exceptions.

Every error carries a machine-readable ``code`` and optional ``data`` that the
global handler renders into the ``{success, error, code, data}`` envelope.
"""
from typing import Any, Optional

from fastapi import HTTPException
from starlette import status

from parkease.core.constants import ErrorCode


class APIError(HTTPException):
    def __init__(
        self,
        status_code: int,
        detail: str,
        code: ErrorCode,
        data: Optional[Any] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code.value
        self.data = data


# Authentication (401)

class NoTokenError(APIError):
    def __init__(self, detail: str = "No token provided"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.NO_TOKEN)


class InvalidTokenError(APIError):
    def __init__(self, detail: str = "Invalid token"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.INVALID_TOKEN)


class InvalidTokenTypeError(APIError):
    def __init__(self, detail: str = "Invalid token type"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.INVALID_TOKEN_TYPE)


class TokenExpiredError(APIError):
    def __init__(self, detail: str = "Token expired"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.TOKEN_EXPIRED)


class SessionInvalidError(APIError):
    def __init__(self, detail: str = "Session expired or invalid"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.SESSION_INVALID)


class InvalidCredentialsError(APIError):
    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail, ErrorCode.INVALID_CREDENTIALS)


# Policy (403)

class DeviceLimitError(APIError):
    def __init__(self, current_devices: list, max_devices: int, detail: Optional[str] = None):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            detail or f"Device limit reached. Maximum {max_devices} device(s) allowed.",
            ErrorCode.DEVICE_LIMIT_REACHED,
            data={"currentDevices": current_devices, "maxDevices": max_devices},
        )


class TrialExpiredError(APIError):
    def __init__(self, trial_expires_at: str, days_expired: int):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Your free trial has expired. Please contact support to upgrade.",
            ErrorCode.TRIAL_EXPIRED,
            data={"trialExpiresAt": trial_expires_at, "daysExpired": days_expired},
        )


class AccountDeactivatedError(APIError):
    def __init__(self, detail: str = "Account has been deactivated"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, ErrorCode.ACCOUNT_DEACTIVATED)


class ForbiddenError(APIError):
    def __init__(self, detail: str = "Not allowed to act on another user's devices"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, ErrorCode.FORBIDDEN)


# Other client errors

class UserNotFoundError(APIError):
    def __init__(self, detail: str = "User not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, ErrorCode.USER_NOT_FOUND)


class BadRequestError(APIError):
    def __init__(self, detail: str, field: Optional[str] = None):
        data = {"fields": [{"field": field, "message": detail}]} if field else None
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, ErrorCode.VALIDATION_ERROR, data=data)


class RateLimitedError(APIError):
    def __init__(self, retry_after: int):
        super().__init__(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many requests. Please slow down.",
            ErrorCode.RATE_LIMITED,
            headers={"Retry-After": str(retry_after)},
        )
