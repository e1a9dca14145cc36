"""Service layer package."""

__all__ = [
    "audit_service",
    "auth_service",
    "device_service",
    "session_service",
    "trial_service",
]
