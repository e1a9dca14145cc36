"""Models package placeholder."""

__all__ = [
    "base",
    "user",
    "device",
    "session",
    "audit",
]
