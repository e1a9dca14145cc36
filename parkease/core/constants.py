"""Application constants such as account kinds, roles and error codes."""
from enum import Enum


class UserType(str, Enum):
    GUEST = "guest"
    PREMIUM = "premium"
    ADMIN = "admin"


class UserRole(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    OPERATOR = "operator"


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class ErrorCode(str, Enum):
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_TOKEN_TYPE = "INVALID_TOKEN_TYPE"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    SESSION_INVALID = "SESSION_INVALID"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    DEVICE_LIMIT_REACHED = "DEVICE_LIMIT_REACHED"
    TRIAL_EXPIRED = "TRIAL_EXPIRED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuditAction(str, Enum):
    USER_SIGNUP = "user_signup"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    LOGOUT_OTHERS = "logout_others"
    DEVICE_LIMIT_REACHED = "device_limit_reached"
    TOKEN_REFRESH = "token_refresh"
